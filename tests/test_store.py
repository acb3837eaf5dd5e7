"""Tests for ReportStore persistence."""

import json
import os

import pytest

from guardian.models import (
    ComplianceFramework,
    ComplianceTag,
    QuickFix,
    QuickFixType,
    ReportFormatError,
    RuleCategory,
    ScanReport,
    Severity,
    Vulnerability,
    VulnerabilityStatus,
)
from guardian.compliance import aggregate_compliance
from guardian.store import LATEST_REPORT, ReportStore
from guardian.tracker import summarize


def make_report(report_id, end_time, vulnerabilities=()):
    vulnerabilities = list(vulnerabilities)
    return ScanReport(
        report_id=report_id,
        project_name="demo",
        project_path="/tmp/demo",
        scan_start_time=end_time - 500,
        scan_end_time=end_time,
        scan_duration=500,
        vulnerabilities=vulnerabilities,
        summary=summarize(vulnerabilities),
        rules_executed=3,
        files_scanned=2,
        lines_scanned=40,
        compliance_status=aggregate_compliance(vulnerabilities),
    )


@pytest.fixture
def finding():
    return Vulnerability(
        rule_id="SEC-001",
        rule_name="Hardcoded Secrets",
        severity=Severity.CRITICAL,
        category=RuleCategory.SECRETS,
        description="Hardcoded password",
        file_path="src/app.py",
        line_number=3,
        column_number=1,
        code_snippet='password = "x"',
        matched_text='password = "x"',
        compliance=(ComplianceTag(ComplianceFramework.PCI_DSS, "8.2.1", "Credentials"),),
        quick_fix=QuickFix(QuickFixType.SUGGEST, "Use a secrets manager"),
        status=VulnerabilityStatus.NEW,
        first_detected=1_000,
        last_detected=1_000,
        fingerprint="abc123",
    )


class TestReportStore:
    def test_save_writes_timestamped_and_latest(self, tmp_path, finding):
        report = make_report("REPORT-1", 1_700_000_000_123, [finding])

        path = ReportStore().save(str(tmp_path), report)

        reports_dir = tmp_path / ".securecode" / "reports"
        assert os.path.basename(path) == "report-1700000000.json"
        timestamped = json.loads((reports_dir / "report-1700000000.json").read_text())
        latest = json.loads((reports_dir / LATEST_REPORT).read_text())
        assert timestamped == latest
        assert latest["reportId"] == "REPORT-1"
        assert latest["summary"]["total"] == 1
        assert latest["complianceStatus"]["pci_dss"]["failedControls"] == 1

    def test_same_second_saves_keep_both_files(self, tmp_path):
        """Two reports ending in the same second do not overwrite each other."""
        store = ReportStore()
        first = store.save(str(tmp_path), make_report("REPORT-A", 1_700_000_000_100))
        second = store.save(str(tmp_path), make_report("REPORT-B", 1_700_000_000_900))

        assert os.path.basename(first) == "report-1700000000.json"
        assert os.path.basename(second) == "report-1700000000-1.json"
        assert [r.report_id for r in store.list_all(str(tmp_path))] == ["REPORT-B", "REPORT-A"]
        assert store.load_latest(str(tmp_path)).report_id == "REPORT-B"

    def test_json_field_names(self, tmp_path, finding):
        data = make_report("REPORT-1", 5_000, [finding]).to_dict()

        assert set(data) == {
            "reportId", "projectName", "projectPath", "scanStartTime", "scanEndTime",
            "scanDuration", "version", "vulnerabilities", "summary", "rulesExecuted",
            "filesScanned", "linesScanned", "previousReportId", "complianceStatus",
        }
        assert set(data["summary"]) == {
            "total", "new", "persistent", "closed", "bySeverity", "byCategory", "byStatus",
        }
        assert data["vulnerabilities"][0]["severity"] == "critical"
        assert data["vulnerabilities"][0]["status"] == "NEW"

    def test_load_latest_restores_report(self, tmp_path, finding):
        store = ReportStore()
        report = make_report("REPORT-1", 5_000, [finding])
        store.save(str(tmp_path), report)

        loaded = store.load_latest(str(tmp_path))

        assert loaded == report

    def test_load_latest_missing(self, tmp_path):
        assert ReportStore().load_latest(str(tmp_path)) is None

    def test_load_latest_corrupt(self, tmp_path):
        reports_dir = tmp_path / ".securecode" / "reports"
        reports_dir.mkdir(parents=True)
        (reports_dir / LATEST_REPORT).write_text("{not json")

        assert ReportStore().load_latest(str(tmp_path)) is None

    def test_list_all_newest_first_skipping_corrupt(self, tmp_path):
        store = ReportStore()
        store.save(str(tmp_path), make_report("REPORT-A", 1_000_000))
        store.save(str(tmp_path), make_report("REPORT-C", 3_000_000))
        store.save(str(tmp_path), make_report("REPORT-B", 2_000_000))
        reports_dir = tmp_path / ".securecode" / "reports"
        (reports_dir / "report-9.json").write_text("garbage")
        (reports_dir / "report-10.json").write_text(json.dumps({"reportId": "missing-fields"}))

        reports = store.list_all(str(tmp_path))

        assert [r.report_id for r in reports] == ["REPORT-C", "REPORT-B", "REPORT-A"]

    def test_load_by_id(self, tmp_path):
        store = ReportStore()
        store.save(str(tmp_path), make_report("REPORT-A", 1_000_000))
        store.save(str(tmp_path), make_report("REPORT-B", 2_000_000))

        assert store.load_by_id(str(tmp_path), "REPORT-A").scan_end_time == 1_000_000
        assert store.load_by_id(str(tmp_path), "REPORT-Z") is None

    def test_list_all_without_reports_dir(self, tmp_path):
        assert ReportStore().list_all(str(tmp_path)) == []


def test_from_dict_rejects_malformed():
    with pytest.raises(ReportFormatError):
        ScanReport.from_dict({"reportId": "x"})
