from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any


class GuardianError(Exception):
    """Base class for errors raised by the guardian package."""


class RuleValidationError(GuardianError):
    """A rule definition is structurally invalid."""


class ReportFormatError(GuardianError):
    """A stored report could not be decoded."""


class ConfigError(GuardianError):
    """A scan configuration file could not be loaded."""


class Severity(IntEnum):
    INFO = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, value: str) -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()


class _ValueEnum(Enum):
    """Enum whose YAML/JSON spelling is its value."""

    @classmethod
    def parse(cls, value: str):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown {cls.__name__}: {value!r}") from None


class RuleCategory(_ValueEnum):
    SECURITY = "security"
    COMPLIANCE = "compliance"
    QUALITY = "quality"
    DOCUMENTATION = "documentation"
    API_SECURITY = "api_security"
    DATA_SECURITY = "data_security"
    CRYPTOGRAPHY = "cryptography"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    INJECTION = "injection"
    SECRETS = "secrets"


class ComplianceFramework(_ValueEnum):
    PCI_DSS = "pci_dss"
    SOC2 = "soc2"
    HIPAA = "hipaa"
    GDPR = "gdpr"
    OWASP = "owasp"
    CWE = "cwe"
    NIST = "nist"


class PatternType(_ValueEnum):
    REGEX = "regex"
    AST = "ast"
    SEMANTIC = "semantic"
    TAINT = "taint"


class QuickFixType(_ValueEnum):
    REMOVE = "remove"
    REPLACE = "replace"
    SUGGEST = "suggest"
    REFACTOR = "refactor"


class VulnerabilityStatus(Enum):
    NEW = "NEW"
    PERSISTENT = "PERSISTENT"
    CLOSED = "CLOSED"
    FIXED = "FIXED"


INACTIVE_STATUSES = frozenset({VulnerabilityStatus.CLOSED, VulnerabilityStatus.FIXED})


@dataclass(frozen=True)
class ComplianceTag:
    framework: ComplianceFramework
    control: str
    requirement: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework.value,
            "control": self.control,
            "requirement": self.requirement,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComplianceTag":
        return cls(
            framework=ComplianceFramework.parse(data["framework"]),
            control=str(data["control"]),
            requirement=str(data.get("requirement", "")),
        )


@dataclass(frozen=True)
class QuickFix:
    type: QuickFixType
    description: str
    replacement: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "replacement": self.replacement,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuickFix":
        replacement = data.get("replacement")
        return cls(
            type=QuickFixType.parse(data["type"]),
            description=str(data.get("description", "")),
            replacement=None if replacement is None else str(replacement),
        )


@dataclass(frozen=True)
class RulePattern:
    type: PatternType
    pattern: str
    file_types: tuple[str, ...] = ()
    message: str | None = None


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    description: str
    severity: Severity
    category: RuleCategory
    compliance: tuple[ComplianceTag, ...] = ()
    patterns: tuple[RulePattern, ...] = ()
    quick_fix: QuickFix | None = None
    enabled: bool = True
    custom: bool = False


@dataclass(frozen=True)
class Vulnerability:
    """A finding produced by a rule match.

    Instances are never mutated: status transitions go through
    ``with_status`` which returns a new value.
    """

    rule_id: str
    rule_name: str
    severity: Severity
    category: RuleCategory
    description: str
    file_path: str
    line_number: int
    column_number: int
    code_snippet: str
    matched_text: str = ""
    compliance: tuple[ComplianceTag, ...] = ()
    quick_fix: QuickFix | None = None
    status: VulnerabilityStatus | None = None
    first_detected: int | None = None
    last_detected: int | None = None
    fingerprint: str = ""

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    def with_status(
        self,
        status: VulnerabilityStatus,
        timestamp: int,
        first_detected: int | None = None,
    ) -> "Vulnerability":
        return replace(
            self,
            status=status,
            first_detected=self.first_detected if first_detected is None else first_detected,
            last_detected=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "severity": self.severity.label,
            "category": self.category.value,
            "description": self.description,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "columnNumber": self.column_number,
            "codeSnippet": self.code_snippet,
            "matchedText": self.matched_text,
            "compliance": [tag.to_dict() for tag in self.compliance],
            "quickFix": self.quick_fix.to_dict() if self.quick_fix else None,
            "status": self.status.value if self.status else None,
            "firstDetected": self.first_detected,
            "lastDetected": self.last_detected,
            "fingerprint": self.fingerprint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        status = data.get("status")
        quick_fix = data.get("quickFix")
        return cls(
            rule_id=str(data["ruleId"]),
            rule_name=str(data.get("ruleName", "")),
            severity=Severity.parse(data["severity"]),
            category=RuleCategory.parse(data["category"]),
            description=str(data.get("description", "")),
            file_path=str(data["filePath"]),
            line_number=int(data.get("lineNumber", 0)),
            column_number=int(data.get("columnNumber", 0)),
            code_snippet=str(data.get("codeSnippet", "")),
            matched_text=str(data.get("matchedText", "")),
            compliance=tuple(ComplianceTag.from_dict(t) for t in data.get("compliance") or []),
            quick_fix=QuickFix.from_dict(quick_fix) if quick_fix else None,
            status=VulnerabilityStatus(status) if status else None,
            first_detected=data.get("firstDetected"),
            last_detected=data.get("lastDetected"),
            fingerprint=str(data.get("fingerprint", "")),
        )


DEFAULT_INCLUDE_PATTERNS = [
    "**/*.java", "**/*.kt", "**/*.py", "**/*.js", "**/*.ts", "**/*.go",
]
DEFAULT_EXCLUDE_PATTERNS = [
    "**/test/**", "**/build/**", "**/target/**", "**/node_modules/**", "**/.git/**",
]
DEFAULT_CUSTOM_RULES_PATH = ".securecode/rules"


@dataclass
class ScanConfig:
    include_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    enabled_rules: list[str] = field(default_factory=list)
    disabled_rules: list[str] = field(default_factory=list)
    custom_rules_path: str = DEFAULT_CUSTOM_RULES_PATH
    min_severity: Severity = Severity.INFO


@dataclass
class ScanResult:
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    rules_executed: int = 0
    files_scanned: int = 0
    lines_scanned: int = 0
    scan_duration: int = 0  # milliseconds
    failed_files: list[str] = field(default_factory=list)


@dataclass
class VulnerabilitySummary:
    total: int = 0
    new: int = 0
    persistent: int = 0
    closed: int = 0
    by_severity: dict[Severity, int] = field(default_factory=dict)
    by_category: dict[RuleCategory, int] = field(default_factory=dict)
    by_status: dict[VulnerabilityStatus, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "new": self.new,
            "persistent": self.persistent,
            "closed": self.closed,
            "bySeverity": {k.label: v for k, v in self.by_severity.items()},
            "byCategory": {k.value: v for k, v in self.by_category.items()},
            "byStatus": {k.value: v for k, v in self.by_status.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VulnerabilitySummary":
        return cls(
            total=int(data.get("total", 0)),
            new=int(data.get("new", 0)),
            persistent=int(data.get("persistent", 0)),
            closed=int(data.get("closed", 0)),
            by_severity={Severity.parse(k): int(v) for k, v in (data.get("bySeverity") or {}).items()},
            by_category={RuleCategory.parse(k): int(v) for k, v in (data.get("byCategory") or {}).items()},
            by_status={VulnerabilityStatus(k): int(v) for k, v in (data.get("byStatus") or {}).items()},
        )


@dataclass
class ComplianceStatus:
    framework: ComplianceFramework
    total_controls: int = 0
    passed_controls: int = 0
    failed_controls: int = 0
    violations: list[Vulnerability] = field(default_factory=list)

    @property
    def compliance_percentage(self) -> float:
        if self.total_controls <= 0:
            return 0.0
        return self.passed_controls / self.total_controls * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework.value,
            "totalControls": self.total_controls,
            "passedControls": self.passed_controls,
            "failedControls": self.failed_controls,
            "compliancePercentage": self.compliance_percentage,
            "violations": [v.to_dict() for v in self.violations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComplianceStatus":
        return cls(
            framework=ComplianceFramework.parse(data["framework"]),
            total_controls=int(data.get("totalControls", 0)),
            passed_controls=int(data.get("passedControls", 0)),
            failed_controls=int(data.get("failedControls", 0)),
            violations=[Vulnerability.from_dict(v) for v in data.get("violations") or []],
        )


@dataclass
class ScanReport:
    report_id: str
    project_name: str
    project_path: str
    scan_start_time: int
    scan_end_time: int
    scan_duration: int
    vulnerabilities: list[Vulnerability]
    summary: VulnerabilitySummary
    rules_executed: int = 0
    files_scanned: int = 0
    lines_scanned: int = 0
    previous_report_id: str | None = None
    compliance_status: dict[ComplianceFramework, ComplianceStatus] = field(default_factory=dict)
    version: str = "1.0.0"

    @property
    def active_vulnerabilities(self) -> list[Vulnerability]:
        return [v for v in self.vulnerabilities if v.is_active]

    def to_dict(self) -> dict[str, Any]:
        return {
            "reportId": self.report_id,
            "projectName": self.project_name,
            "projectPath": self.project_path,
            "scanStartTime": self.scan_start_time,
            "scanEndTime": self.scan_end_time,
            "scanDuration": self.scan_duration,
            "version": self.version,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "summary": self.summary.to_dict(),
            "rulesExecuted": self.rules_executed,
            "filesScanned": self.files_scanned,
            "linesScanned": self.lines_scanned,
            "previousReportId": self.previous_report_id,
            "complianceStatus": {
                framework.value: status.to_dict()
                for framework, status in self.compliance_status.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScanReport":
        try:
            return cls(
                report_id=str(data["reportId"]),
                project_name=str(data.get("projectName", "")),
                project_path=str(data.get("projectPath", "")),
                scan_start_time=int(data["scanStartTime"]),
                scan_end_time=int(data["scanEndTime"]),
                scan_duration=int(data.get("scanDuration", 0)),
                version=str(data.get("version", "1.0.0")),
                vulnerabilities=[Vulnerability.from_dict(v) for v in data.get("vulnerabilities") or []],
                summary=VulnerabilitySummary.from_dict(data.get("summary") or {}),
                rules_executed=int(data.get("rulesExecuted", 0)),
                files_scanned=int(data.get("filesScanned", 0)),
                lines_scanned=int(data.get("linesScanned", 0)),
                previous_report_id=data.get("previousReportId"),
                compliance_status={
                    ComplianceFramework.parse(name): ComplianceStatus.from_dict(status)
                    for name, status in (data.get("complianceStatus") or {}).items()
                },
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ReportFormatError(f"Malformed report: {e}") from e
