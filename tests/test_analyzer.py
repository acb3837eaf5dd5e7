"""Tests for ScanOrchestrator and rule filtering."""

import logging

import pytest

from guardian.analyzer import ScanOrchestrator, filter_rules
from guardian.models import ScanConfig, Severity


class TestFilterRules:
    """Allow/deny lists and the severity threshold."""

    @pytest.fixture
    def rules(self, make_rule):
        return [
            make_rule("R-CRIT", severity=Severity.CRITICAL),
            make_rule("R-MED", severity=Severity.MEDIUM),
            make_rule("R-LOW", severity=Severity.LOW),
            make_rule("R-INFO", severity=Severity.INFO),
        ]

    def ids(self, rules):
        return [r.id for r in rules]

    def test_no_filters(self, rules):
        assert self.ids(filter_rules(rules, ScanConfig())) == ["R-CRIT", "R-MED", "R-LOW", "R-INFO"]

    def test_allowlist(self, rules):
        config = ScanConfig(enabled_rules=["R-LOW", "R-CRIT"])
        assert self.ids(filter_rules(rules, config)) == ["R-CRIT", "R-LOW"]

    def test_allowlist_takes_precedence_over_blocklist(self, rules):
        config = ScanConfig(enabled_rules=["R-LOW"], disabled_rules=["R-LOW"])
        assert self.ids(filter_rules(rules, config)) == ["R-LOW"]

    def test_blocklist(self, rules):
        config = ScanConfig(disabled_rules=["R-MED"])
        assert self.ids(filter_rules(rules, config)) == ["R-CRIT", "R-LOW", "R-INFO"]

    def test_min_severity_keeps_at_least_as_severe(self, rules):
        config = ScanConfig(min_severity=Severity.MEDIUM)
        assert self.ids(filter_rules(rules, config)) == ["R-CRIT", "R-MED"]


class TestScan:
    """End-to-end scans of a temporary project."""

    def config(self, **kwargs):
        kwargs.setdefault("enabled_rules", ["CUS-001"])
        return ScanConfig(**kwargs)

    def test_scan_counts(self, project):
        result = ScanOrchestrator().scan(str(project), self.config())

        assert result.rules_executed == 1
        assert result.files_scanned == 1
        assert result.lines_scanned == 4
        assert len(result.vulnerabilities) == 1
        assert result.failed_files == []
        assert result.scan_duration >= 0

        vuln = result.vulnerabilities[0]
        assert vuln.rule_id == "CUS-001"
        assert vuln.file_path == "src/app.py"
        assert vuln.line_number == 3
        assert vuln.column_number == 1
        assert vuln.code_snippet == 'import os\n\npassword = "hunter2"\nprint(password)'
        assert len(vuln.fingerprint) == 64

    def test_min_severity_excludes_rule_execution(self, project, write_rule):
        """Rules below the threshold never run, so they cannot produce findings."""
        write_rule(project / ".securecode" / "rules", "low.yaml", """\
            id: CUS-LOW
            name: Print call
            description: print() used.
            severity: low
            category: quality
            patterns:
              - type: regex
                pattern: 'print\\('
        """)
        config = self.config(enabled_rules=["CUS-001", "CUS-LOW"], min_severity=Severity.MEDIUM)

        result = ScanOrchestrator().scan(str(project), config)

        assert result.rules_executed == 1
        assert {v.rule_id for v in result.vulnerabilities} == {"CUS-001"}

    def test_low_rule_runs_without_threshold(self, project, write_rule):
        write_rule(project / ".securecode" / "rules", "low.yaml", """\
            id: CUS-LOW
            name: Print call
            description: print() used.
            severity: low
            category: quality
            patterns:
              - type: regex
                pattern: 'print\\('
        """)
        result = ScanOrchestrator().scan(str(project), self.config(enabled_rules=["CUS-001", "CUS-LOW"]))

        assert {v.rule_id for v in result.vulnerabilities} == {"CUS-001", "CUS-LOW"}

    def test_excluded_files_are_not_scanned(self, project):
        (project / "test").mkdir()
        (project / "test" / "test_app.py").write_text('password = "x"\n')

        result = ScanOrchestrator().scan(str(project), self.config())

        assert result.files_scanned == 1
        assert all(v.file_path == "src/app.py" for v in result.vulnerabilities)

    def test_unreadable_file_is_skipped(self, project, caplog):
        """A binary file is reported as failed; the rest of the scan continues."""
        (project / "src" / "blob.py").write_bytes(b'password = "x"\x00\x01')

        with caplog.at_level(logging.WARNING):
            result = ScanOrchestrator().scan(str(project), self.config())

        assert result.files_scanned == 2
        assert result.failed_files == ["src/blob.py"]
        assert result.lines_scanned == 4
        assert len(result.vulnerabilities) == 1
        assert "src/blob.py" in caplog.text

    def test_missing_root_gives_empty_result(self, tmp_path):
        result = ScanOrchestrator().scan(str(tmp_path / "missing"))

        assert result.vulnerabilities == []
        assert result.files_scanned == 0
        assert result.rules_executed == 0

    def test_custom_rules_path_from_config(self, project, write_rule):
        write_rule(project / "rules", "alt.yaml", """\
            id: CUS-ALT
            name: Import os
            description: os imported.
            severity: info
            category: quality
            patterns:
              - type: regex
                pattern: '^import os$'
        """)
        config = self.config(enabled_rules=["CUS-ALT", "CUS-001"], custom_rules_path="rules")

        result = ScanOrchestrator().scan(str(project), config)

        assert [v.rule_id for v in result.vulnerabilities] == ["CUS-ALT"]

    def test_progress_callback(self, project):
        calls = []
        ScanOrchestrator().scan(
            str(project), self.config(), progress_callback=lambda f, i, t: calls.append((f, i, t)),
        )
        assert calls == [("src/app.py", 0, 1)]

    def test_builtin_rules_run_by_default(self, project):
        """Without an allowlist the bundled catalog also runs."""
        result = ScanOrchestrator().scan(str(project), ScanConfig())
        assert "SEC-001" in {v.rule_id for v in result.vulnerabilities}
