import logging
import os
import time
from typing import Callable

from .matcher import PatternMatcher
from .models import Rule, ScanConfig, ScanResult, Vulnerability
from .rules import RuleRepository
from .tracker import assign_fingerprints
from .utils import FileSelector, count_lines, read_file_safe, to_relative

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], None]


def filter_rules(rules: list[Rule], config: ScanConfig) -> list[Rule]:
    """Apply the allow/deny id lists, then the minimum severity."""
    if config.enabled_rules:
        allowed = set(config.enabled_rules)
        rules = [r for r in rules if r.id in allowed]
    elif config.disabled_rules:
        denied = set(config.disabled_rules)
        rules = [r for r in rules if r.id not in denied]
    return [r for r in rules if r.severity >= config.min_severity]


class ScanOrchestrator:
    """Orchestrator: rule resolution -> file selection -> pattern matching."""

    def __init__(
        self,
        rule_repository: RuleRepository | None = None,
        pattern_matcher: PatternMatcher | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.rule_repository = rule_repository or RuleRepository(logger=self.logger)
        self.pattern_matcher = pattern_matcher or PatternMatcher(logger=self.logger)

    def resolve_rules(self, root: str, config: ScanConfig) -> list[Rule]:
        custom_dir = os.path.join(root, config.custom_rules_path)
        return filter_rules(self.rule_repository.load_all(custom_dir), config)

    def resolve_files(self, root: str, config: ScanConfig) -> list[str]:
        return FileSelector(root, config.include_patterns, config.exclude_patterns).select()

    def scan(
        self,
        root: str,
        config: ScanConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> ScanResult:
        config = config or ScanConfig()
        start = time.monotonic()

        if not os.path.isdir(root):
            self.logger.warning("Project root %s does not exist or is not a directory", root)
            return ScanResult()

        rules = self.resolve_rules(root, config)
        files = self.resolve_files(root, config)
        result = ScanResult(rules_executed=len(rules), files_scanned=len(files))

        vulnerabilities: list[Vulnerability] = []
        total = len(files)
        for idx, fpath in enumerate(files):
            relative_path = to_relative(root, fpath)
            if progress_callback:
                progress_callback(relative_path, idx, total)

            content = read_file_safe(fpath)
            if content is None:
                self.logger.warning("Error scanning file %s: could not read file", relative_path)
                result.failed_files.append(relative_path)
                continue

            result.lines_scanned += count_lines(content)
            for rule in rules:
                matches = self.pattern_matcher.match_content(rule, relative_path, content)
                vulnerabilities.extend(m.to_vulnerability() for m in matches)

        result.vulnerabilities = assign_fingerprints(vulnerabilities)
        result.scan_duration = int((time.monotonic() - start) * 1000)
        return result
