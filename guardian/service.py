import logging
import os
import random

from .analyzer import ProgressCallback, ScanOrchestrator
from .compliance import aggregate_compliance
from .models import Rule, RuleCategory, ScanConfig, ScanReport, ScanResult, Severity
from .rules import RuleRepository, find_rule
from .store import ReportStore
from .tracker import VulnerabilityTracker, now_millis, summarize

logger = logging.getLogger(__name__)

REPORT_VERSION = "1.0.0"


def generate_report_id(now: int) -> str:
    return f"REPORT-{now // 1000}-{random.randint(1000, 9999)}"


def generate_report(
    project_path: str,
    project_name: str,
    scan_result: ScanResult,
    previous_report: ScanReport | None = None,
    now: int | None = None,
    tracker: VulnerabilityTracker | None = None,
) -> ScanReport:
    now = now_millis() if now is None else now
    tracker = tracker or VulnerabilityTracker()

    if previous_report is None:
        vulnerabilities = tracker.baseline(scan_result.vulnerabilities, now)
    else:
        vulnerabilities = tracker.track(scan_result.vulnerabilities, previous_report.vulnerabilities, now)

    return ScanReport(
        report_id=generate_report_id(now),
        project_name=project_name,
        project_path=project_path,
        scan_start_time=now - scan_result.scan_duration,
        scan_end_time=now,
        scan_duration=scan_result.scan_duration,
        version=REPORT_VERSION,
        vulnerabilities=vulnerabilities,
        summary=summarize(vulnerabilities),
        rules_executed=scan_result.rules_executed,
        files_scanned=scan_result.files_scanned,
        lines_scanned=scan_result.lines_scanned,
        previous_report_id=previous_report.report_id if previous_report else None,
        compliance_status=aggregate_compliance(vulnerabilities),
    )


class ScanService:
    """Runs a scan of one project and keeps its report history."""

    def __init__(
        self,
        root: str,
        project_name: str | None = None,
        orchestrator: ScanOrchestrator | None = None,
        store: ReportStore | None = None,
    ):
        self.root = root
        self.project_name = project_name or os.path.basename(os.path.abspath(root))
        self.orchestrator = orchestrator or ScanOrchestrator()
        self.store = store or ReportStore()

    def execute_scan(
        self,
        config: ScanConfig | None = None,
        progress_callback: ProgressCallback | None = None,
        now: int | None = None,
    ) -> tuple[ScanReport, ScanResult]:
        logger.info("Starting scan for project %s at %s", self.project_name, self.root)

        if not os.path.isdir(self.root):
            logger.warning("Project root %s is not a directory; nothing scanned or saved", self.root)
            result = ScanResult()
            report = generate_report(
                project_path=os.path.abspath(self.root),
                project_name=self.project_name,
                scan_result=result,
                now=now,
            )
            return report, result

        previous = self.store.load_latest(self.root)
        if previous is not None:
            logger.info("Found previous report %s; tracking changes since last scan", previous.report_id)
        else:
            logger.info("No previous report found - performing baseline scan")

        result = self.orchestrator.scan(self.root, config, progress_callback=progress_callback)
        logger.info(
            "Scan complete: %d files, %d lines, %d rules, %d findings",
            result.files_scanned, result.lines_scanned, result.rules_executed, len(result.vulnerabilities),
        )

        report = generate_report(
            project_path=os.path.abspath(self.root),
            project_name=self.project_name,
            scan_result=result,
            previous_report=previous,
            now=now,
        )
        self.store.save(self.root, report)
        logger.info(
            "Summary: total=%d new=%d persistent=%d closed=%d",
            report.summary.total, report.summary.new, report.summary.persistent, report.summary.closed,
        )
        return report, result

    def latest_report(self) -> ScanReport | None:
        return self.store.load_latest(self.root)

    def report_by_id(self, report_id: str) -> ScanReport | None:
        return self.store.load_by_id(self.root, report_id)

    def all_reports(self) -> list[ScanReport]:
        return self.store.list_all(self.root)


class RuleService:
    """Rule catalog queries for one project."""

    def __init__(self, root: str, config: ScanConfig | None = None, repository: RuleRepository | None = None):
        self.root = root
        self.config = config or ScanConfig()
        self.repository = repository or RuleRepository()

    @property
    def custom_rules_dir(self) -> str:
        return os.path.join(self.root, self.config.custom_rules_path)

    def all_rules(self) -> list[Rule]:
        return self.repository.load_all(self.custom_rules_dir)

    def builtin_rules(self) -> list[Rule]:
        return self.repository.load_builtin()

    def custom_rules(self) -> list[Rule]:
        return self.repository.load_custom(self.custom_rules_dir)

    def rule_by_id(self, rule_id: str) -> Rule | None:
        return find_rule(self.all_rules(), rule_id)

    def rules_by_category(self, category: RuleCategory) -> list[Rule]:
        return [r for r in self.all_rules() if r.category == category]

    def rules_by_severity(self, severity: Severity) -> list[Rule]:
        return [r for r in self.all_rules() if r.severity == severity]
