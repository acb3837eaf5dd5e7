import json
import logging
import os

from .models import ReportFormatError, ScanReport

logger = logging.getLogger(__name__)

REPORTS_DIR = os.path.join(".securecode", "reports")
LATEST_REPORT = "latest-report.json"


class ReportStore:
    """Reads and writes scan reports under ``<root>/.securecode/reports``.

    Each save writes ``report-<epochSeconds>.json`` plus an overwritten
    ``latest-report.json`` with identical content. Timestamped files are
    never overwritten; a second save in the same second gets
    ``report-<epochSeconds>-1.json`` and so on. Writers are not
    coordinated: one scan per project root at a time.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def reports_dir(root: str) -> str:
        return os.path.join(root, REPORTS_DIR)

    @staticmethod
    def report_filename(report: ScanReport, sequence: int = 0) -> str:
        stem = f"report-{report.scan_end_time // 1000}"
        return f"{stem}-{sequence}.json" if sequence else f"{stem}.json"

    def unused_report_path(self, reports_dir: str, report: ScanReport) -> str:
        sequence = 0
        while True:
            path = os.path.join(reports_dir, self.report_filename(report, sequence))
            if not os.path.exists(path):
                return path
            sequence += 1

    def save(self, root: str, report: ScanReport) -> str:
        """Write the report and the latest pointer. Returns the timestamped path."""
        reports_dir = self.reports_dir(root)
        os.makedirs(reports_dir, exist_ok=True)

        data = report.to_dict()
        report_path = self.unused_report_path(reports_dir, report)
        for path in (report_path, os.path.join(reports_dir, LATEST_REPORT)):
            tmp_path = path + ".tmp"
            with open(tmp_path, "w", encoding="utf-8") as fp:
                json.dump(data, fp, indent=2)
            os.replace(tmp_path, path)

        self.logger.info("Report saved to: %s", os.path.abspath(report_path))
        return report_path

    def _read(self, path: str) -> ScanReport:
        with open(path, "r", encoding="utf-8") as fp:
            return ScanReport.from_dict(json.load(fp))

    def load_latest(self, root: str) -> ScanReport | None:
        path = os.path.join(self.reports_dir(root), LATEST_REPORT)
        if not os.path.isfile(path):
            return None
        try:
            return self._read(path)
        except (OSError, ValueError, ReportFormatError) as e:
            self.logger.warning("Error loading latest report %s: %s", path, e)
            return None

    def _iter_reports(self, root: str):
        reports_dir = self.reports_dir(root)
        if not os.path.isdir(reports_dir):
            return
        for fname in sorted(os.listdir(reports_dir)):
            if not fname.endswith(".json") or fname == LATEST_REPORT:
                continue
            path = os.path.join(reports_dir, fname)
            try:
                yield self._read(path)
            except (OSError, ValueError, ReportFormatError) as e:
                self.logger.debug("Skipping unreadable report %s: %s", path, e)

    def load_by_id(self, root: str, report_id: str) -> ScanReport | None:
        return next((r for r in self._iter_reports(root) if r.report_id == report_id), None)

    def list_all(self, root: str) -> list[ScanReport]:
        """All stored reports, newest scan end time first."""
        return sorted(self._iter_reports(root), key=lambda r: r.scan_end_time, reverse=True)
