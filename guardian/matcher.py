import logging
import os
import re
from dataclasses import dataclass

from .models import PatternType, Rule, RulePattern, Vulnerability
from .utils import read_file_safe, split_lines

logger = logging.getLogger(__name__)

SNIPPET_CONTEXT_LINES = 2


@dataclass(frozen=True)
class Match:
    rule: Rule
    file_path: str
    line_number: int
    column_number: int
    matched_text: str
    code_snippet: str
    message: str

    def to_vulnerability(self) -> Vulnerability:
        return Vulnerability(
            rule_id=self.rule.id,
            rule_name=self.rule.name,
            severity=self.rule.severity,
            category=self.rule.category,
            description=self.message,
            file_path=self.file_path,
            line_number=self.line_number,
            column_number=self.column_number,
            code_snippet=self.code_snippet,
            matched_text=self.matched_text,
            compliance=self.rule.compliance,
            quick_fix=self.rule.quick_fix,
        )


def line_number_at(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def column_number_at(content: str, offset: int) -> int:
    return offset - content.rfind("\n", 0, offset)


def extract_snippet(content: str, line_number: int, context: int = SNIPPET_CONTEXT_LINES) -> str:
    lines = split_lines(content)
    start = max(0, line_number - context - 1)
    end = min(len(lines), line_number + context)
    return "\n".join(lines[start:end])


def file_extension(path: str) -> str:
    return os.path.splitext(path)[1].lstrip(".").lower()


class MatchStrategy:
    """Produces matches for one kind of rule pattern."""

    def find(self, rule: Rule, pattern: RulePattern, file_path: str, content: str) -> list[Match]:
        raise NotImplementedError


class RegexStrategy(MatchStrategy):
    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._compiled: dict[str, re.Pattern[str] | None] = {}

    def _compile(self, rule: Rule, pattern: RulePattern) -> re.Pattern[str] | None:
        if pattern.pattern not in self._compiled:
            try:
                self._compiled[pattern.pattern] = re.compile(pattern.pattern, re.MULTILINE)
            except re.error as e:
                self.logger.warning("Invalid regex in rule %s (%r): %s", rule.id, pattern.pattern, e)
                self._compiled[pattern.pattern] = None
        return self._compiled[pattern.pattern]

    def find(self, rule: Rule, pattern: RulePattern, file_path: str, content: str) -> list[Match]:
        regex = self._compile(rule, pattern)
        if regex is None:
            return []

        message = pattern.message if pattern.message is not None else rule.description
        matches: list[Match] = []
        for m in regex.finditer(content):
            line_number = line_number_at(content, m.start())
            matches.append(Match(
                rule=rule,
                file_path=file_path,
                line_number=line_number,
                column_number=column_number_at(content, m.start()),
                matched_text=m.group(0),
                code_snippet=extract_snippet(content, line_number),
                message=message,
            ))
        return matches


class NoopStrategy(MatchStrategy):
    """Recognized pattern kind with no analysis engine behind it yet."""

    def find(self, rule: Rule, pattern: RulePattern, file_path: str, content: str) -> list[Match]:
        return []


class PatternMatcher:
    """Apply a rule's patterns to file content."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        noop = NoopStrategy()
        self.strategies: dict[PatternType, MatchStrategy] = {
            PatternType.REGEX: RegexStrategy(self.logger),
            PatternType.AST: noop,
            PatternType.SEMANTIC: noop,
            PatternType.TAINT: noop,
        }

    def match_rule(self, rule: Rule, path: str, display_path: str | None = None) -> list[Match]:
        """Read path and match rule against it. Unreadable files yield no matches."""
        if not rule.enabled:
            return []
        content = read_file_safe(path)
        if content is None:
            return []
        return self.match_content(rule, display_path or path, content)

    def match_content(self, rule: Rule, file_path: str, content: str) -> list[Match]:
        if not rule.enabled:
            return []

        ext = file_extension(file_path)
        matches: list[Match] = []
        for pattern in rule.patterns:
            if pattern.file_types and ext not in {ft.lstrip(".").lower() for ft in pattern.file_types}:
                continue
            strategy = self.strategies.get(pattern.type)
            if strategy is None:
                continue
            matches.extend(strategy.find(rule, pattern, file_path, content))
        return matches
