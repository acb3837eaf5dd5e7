"""Shared fixtures for the guardian test suite."""

import textwrap

import pytest

from guardian.models import (
    ComplianceFramework,
    ComplianceTag,
    PatternType,
    Rule,
    RuleCategory,
    RulePattern,
    Severity,
)

PASSWORD_RULE_YAML = """\
id: CUS-001
name: Test Password
description: Password literal assigned in code.
severity: high
category: secrets
compliance:
  - framework: pci_dss
    control: "8.2.1"
    requirement: Protect stored credentials
  - framework: owasp
    control: A07:2021
    requirement: Identification and Authentication Failures
patterns:
  - type: regex
    pattern: 'password\\s*=\\s*"[^"]+"'
"""


@pytest.fixture
def make_rule():
    """Factory for in-memory rules with a single regex pattern by default."""

    def _make(
        rule_id="TST-001",
        pattern=r'password\s*=\s*"[^"]+"',
        severity=Severity.HIGH,
        patterns=None,
        compliance=(),
        enabled=True,
        description="Test rule description",
    ):
        return Rule(
            id=rule_id,
            name=f"Rule {rule_id}",
            description=description,
            severity=severity,
            category=RuleCategory.SECRETS,
            compliance=tuple(compliance),
            patterns=tuple(patterns) if patterns is not None else (RulePattern(PatternType.REGEX, pattern),),
            enabled=enabled,
        )

    return _make


@pytest.fixture
def pci_tag():
    return ComplianceTag(ComplianceFramework.PCI_DSS, "8.2.1", "Protect stored credentials")


@pytest.fixture
def write_rule():
    """Write a YAML rule document into a directory and return its path."""

    def _write(directory, filename, text):
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(textwrap.dedent(text))
        return path

    return _write


@pytest.fixture
def project(tmp_path, write_rule):
    """A project root with one custom rule and one offending source file."""
    write_rule(tmp_path / ".securecode" / "rules", "password.yaml", PASSWORD_RULE_YAML)
    src = tmp_path / "src"
    src.mkdir()
    (src / "app.py").write_text('import os\n\npassword = "hunter2"\nprint(password)\n')
    return tmp_path
