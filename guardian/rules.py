"""Loading and validation of YAML rule definitions.

Built-in rules ship as package data under ``guardian/builtin_rules``; the
catalog is whatever ``*.yaml`` files the installed package contains.
Custom rules live in a project directory (``.securecode/rules`` by default)
and are marked ``custom=True`` on load.
"""

import logging
import os
from importlib import resources
from typing import Any

import yaml

from .models import (
    ComplianceTag,
    PatternType,
    QuickFix,
    Rule,
    RuleCategory,
    RulePattern,
    RuleValidationError,
    Severity,
)

logger = logging.getLogger(__name__)

BUILTIN_RULES_PACKAGE = "guardian.builtin_rules"
RULE_FILE_EXTENSIONS = (".yaml", ".yml")

_REQUIRED_TEXT_FIELDS = ("id", "name", "description")


def _require_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None or not str(value).strip():
        raise RuleValidationError(f"missing required field '{key}'")
    return str(value).strip()


def _optional_bool(data: dict[str, Any], key: str, default: bool, rule_id: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise RuleValidationError(f"rule {rule_id}: field '{key}' must be true or false, got {value!r}")
    return value


def _parse_pattern(data: Any) -> RulePattern:
    if not isinstance(data, dict):
        raise RuleValidationError(f"pattern must be a mapping, got {type(data).__name__}")
    text = data.get("pattern")
    if text is None or str(text) == "":
        raise RuleValidationError("pattern entry has no 'pattern' text")
    file_types = data.get("fileTypes") or []
    if not isinstance(file_types, list):
        raise RuleValidationError("'fileTypes' must be a list")
    message = data.get("message")
    return RulePattern(
        type=PatternType.parse(data.get("type", "regex")),
        pattern=str(text),
        file_types=tuple(str(ft).lstrip(".").lower() for ft in file_types),
        message=None if message is None else str(message),
    )


def parse_rule(data: Any, custom: bool = False) -> Rule:
    """Build a Rule from a decoded YAML document.

    Raises RuleValidationError if the document lacks an id, name,
    description or at least one pattern, or carries an unknown enum value.
    """
    if not isinstance(data, dict):
        raise RuleValidationError(
            f"rule must be a YAML mapping, got {type(data).__name__}"
        )

    rule_id, name, description = (_require_text(data, key) for key in _REQUIRED_TEXT_FIELDS)

    raw_patterns = data.get("patterns") or []
    if not isinstance(raw_patterns, list) or not raw_patterns:
        raise RuleValidationError(f"rule {rule_id} has no patterns")

    raw_compliance = data.get("compliance") or []
    if not isinstance(raw_compliance, list):
        raise RuleValidationError(f"rule {rule_id}: 'compliance' must be a list")

    quick_fix = data.get("quickFix")
    enabled = _optional_bool(data, "enabled", True, rule_id)
    marked_custom = _optional_bool(data, "custom", False, rule_id)

    try:
        return Rule(
            id=rule_id,
            name=name,
            description=description,
            severity=Severity.parse(_require_text(data, "severity")),
            category=RuleCategory.parse(_require_text(data, "category")),
            compliance=tuple(ComplianceTag.from_dict(tag) for tag in raw_compliance),
            patterns=tuple(_parse_pattern(p) for p in raw_patterns),
            quick_fix=QuickFix.from_dict(quick_fix) if quick_fix else None,
            enabled=enabled,
            custom=custom or marked_custom,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RuleValidationError(f"rule {rule_id}: {e}") from e


def load_rule_text(text: str, custom: bool = False) -> Rule:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleValidationError(f"malformed YAML: {e}") from e
    return parse_rule(data, custom=custom)


def load_rule_file(path: str, custom: bool = False) -> Rule:
    with open(path, "r", encoding="utf-8") as fp:
        return load_rule_text(fp.read(), custom=custom)


class RuleRepository:
    """Loads built-in and custom rules, keeping only enabled ones."""

    def __init__(
        self,
        builtin_package: str = BUILTIN_RULES_PACKAGE,
        logger: logging.Logger | None = None,
    ):
        self.builtin_package = builtin_package
        self.logger = logger or logging.getLogger(__name__)

    def builtin_rule_files(self) -> list[str]:
        """Names of the bundled rule resources, sorted."""
        try:
            root = resources.files(self.builtin_package)
        except (ModuleNotFoundError, TypeError) as e:
            self.logger.warning("Built-in rule package %s unavailable: %s", self.builtin_package, e)
            return []
        return sorted(
            entry.name for entry in root.iterdir()
            if entry.is_file() and entry.name.endswith(RULE_FILE_EXTENSIONS)
        )

    def load_builtin(self) -> list[Rule]:
        rules: list[Rule] = []
        names = self.builtin_rule_files()
        if not names:
            return rules
        root = resources.files(self.builtin_package)
        for name in names:
            try:
                text = root.joinpath(name).read_text(encoding="utf-8")
                rules.append(load_rule_text(text))
            except (OSError, UnicodeDecodeError, RuleValidationError) as e:
                self.logger.warning("Skipping built-in rule %s: %s", name, e)
        return rules

    def load_custom(self, rules_dir: str) -> list[Rule]:
        """Load every YAML rule directly inside rules_dir (not recursive)."""
        rules: list[Rule] = []
        if not os.path.isdir(rules_dir):
            return rules

        try:
            names = sorted(os.listdir(rules_dir))
        except OSError as e:
            self.logger.warning("Cannot list custom rules in %s: %s", rules_dir, e)
            return rules

        for fname in names:
            fpath = os.path.join(rules_dir, fname)
            if not fname.lower().endswith(RULE_FILE_EXTENSIONS) or not os.path.isfile(fpath):
                continue
            try:
                rules.append(load_rule_file(fpath, custom=True))
            except (OSError, UnicodeDecodeError, RuleValidationError) as e:
                self.logger.warning("Skipping custom rule %s: %s", fpath, e)
        return rules

    def load_all(self, custom_rules_dir: str | None = None) -> list[Rule]:
        rules = self.load_builtin()
        if custom_rules_dir is not None:
            rules.extend(self.load_custom(custom_rules_dir))
        return [rule for rule in rules if rule.enabled]


def find_rule(rules: list[Rule], rule_id: str) -> Rule | None:
    """First rule with the given id; duplicates after it are ignored."""
    return next((rule for rule in rules if rule.id == rule_id), None)
