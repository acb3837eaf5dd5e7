from .models import ComplianceFramework, ComplianceStatus, Vulnerability


def aggregate_compliance(
    vulnerabilities: list[Vulnerability],
) -> dict[ComplianceFramework, ComplianceStatus]:
    """Per-framework status built from active violations only.

    Rules only encode negative checks, so a control is never observed as
    passing: every control touched by a violation counts as failed and
    passed_controls stays 0.
    """
    violations: dict[ComplianceFramework, list[Vulnerability]] = {}
    controls: dict[ComplianceFramework, set[str]] = {}

    for vuln in vulnerabilities:
        if not vuln.is_active:
            continue
        # one vulnerability tagged twice for a framework is one violation
        for framework in dict.fromkeys(tag.framework for tag in vuln.compliance):
            violations.setdefault(framework, []).append(vuln)
        for tag in vuln.compliance:
            controls.setdefault(tag.framework, set()).add(tag.control)

    return {
        framework: ComplianceStatus(
            framework=framework,
            total_controls=len(controls[framework]),
            passed_controls=0,
            failed_controls=len(controls[framework]),
            violations=framework_violations,
        )
        for framework, framework_violations in violations.items()
    }
