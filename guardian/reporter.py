import json
from datetime import datetime, timezone

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .models import Rule, ScanReport, ScanResult, Severity, Vulnerability, VulnerabilityStatus

SEVERITY_COLORS = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}

STATUS_COLORS = {
    VulnerabilityStatus.NEW: "bold magenta",
    VulnerabilityStatus.PERSISTENT: "white",
    VulnerabilityStatus.CLOSED: "green",
    VulnerabilityStatus.FIXED: "green",
}


def format_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def print_banner(console: Console) -> None:
    banner = (
        "[bold cyan]SecureCode Guardian[/bold cyan] v" + __version__ + "\n"
        "[dim]Rule-driven security & compliance scanner[/dim]"
    )
    console.print(Panel(banner, border_style="cyan", expand=False))


def _severity_cell(severity: Severity) -> str:
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{severity.name}[/{color}]"


def _status_cell(status: VulnerabilityStatus | None) -> str:
    if status is None:
        return "-"
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def print_findings(console: Console, report: ScanReport, verbose: bool = False, show_closed: bool = False) -> None:
    vulns: list[Vulnerability] = [
        v for v in report.vulnerabilities if show_closed or v.status != VulnerabilityStatus.CLOSED
    ]
    if not vulns:
        console.print("\n[green]No active findings.[/green]")
        return

    vulns.sort(key=lambda v: (-v.severity, v.file_path, v.line_number))
    console.print(f"\n[bold]{len(vulns)} findings:[/bold]\n")

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Status", width=11)
    table.add_column("Severity", width=9)
    table.add_column("Rule", style="dim", width=9)
    table.add_column("Location")
    table.add_column("Description")
    if verbose:
        table.add_column("Snippet", max_width=60)

    for vuln in vulns:
        row = [
            _status_cell(vuln.status),
            _severity_cell(vuln.severity),
            vuln.rule_id,
            f"{vuln.file_path}:{vuln.line_number}:{vuln.column_number}",
            vuln.description,
        ]
        if verbose:
            row.append(vuln.code_snippet or "-")
        table.add_row(*row)

    console.print(table)


def print_summary(console: Console, report: ScanReport, result: ScanResult | None = None) -> None:
    summary = report.summary
    table = Table(title="Scan Summary", show_header=False, border_style="dim")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Report", report.report_id)
    table.add_row("Files scanned", str(report.files_scanned))
    table.add_row("Lines scanned", str(report.lines_scanned))
    table.add_row("Rules executed", str(report.rules_executed))
    table.add_row("Active findings", str(summary.total))
    table.add_row("New", f"[bold magenta]{summary.new}[/bold magenta]")
    table.add_row("Persistent", str(summary.persistent))
    table.add_row("Closed", f"[green]{summary.closed}[/green]")
    for severity in sorted(Severity, reverse=True):
        color = SEVERITY_COLORS[severity]
        table.add_row(severity.name.capitalize(), f"[{color}]{summary.by_severity.get(severity, 0)}[/{color}]")
    table.add_row("Scan duration", f"{report.scan_duration / 1000:.2f}s")
    if result is not None and result.failed_files:
        table.add_row("Unreadable files", f"[red]{len(result.failed_files)}[/red]")

    console.print()
    console.print(table)

    if report.compliance_status:
        print_compliance(console, report)


def print_compliance(console: Console, report: ScanReport) -> None:
    table = Table(title="Compliance", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Framework")
    table.add_column("Controls failed", justify="right")
    table.add_column("Violations", justify="right")
    table.add_column("Compliance", justify="right")
    for framework, status in sorted(report.compliance_status.items(), key=lambda kv: kv[0].value):
        table.add_row(
            framework.value.upper(),
            f"{status.failed_controls}/{status.total_controls}",
            str(len(status.violations)),
            f"{status.compliance_percentage:.0f}%",
        )
    console.print()
    console.print(table)


def print_report_list(console: Console, reports: list[ScanReport]) -> None:
    if not reports:
        console.print("[yellow]No reports found.[/yellow]")
        return
    table = Table(title="Reports", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Report")
    table.add_column("Finished")
    table.add_column("Active", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Closed", justify="right")
    for report in reports:
        table.add_row(
            report.report_id,
            format_timestamp(report.scan_end_time),
            str(report.summary.total),
            str(report.summary.new),
            str(report.summary.closed),
        )
    console.print(table)


def print_rules(console: Console, rules: list[Rule]) -> None:
    if not rules:
        console.print("[yellow]No rules loaded.[/yellow]")
        return
    table = Table(title="Rules", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Rule", style="dim")
    table.add_column("Severity")
    table.add_column("Category")
    table.add_column("Name")
    table.add_column("Patterns", justify="right")
    table.add_column("Source")
    for rule in rules:
        table.add_row(
            rule.id,
            _severity_cell(rule.severity),
            rule.category.value,
            rule.name,
            str(len(rule.patterns)),
            "custom" if rule.custom else "built-in",
        )
    console.print(table)


def export_json(report: ScanReport, output_path: str) -> None:
    with open(output_path, "w", encoding="utf-8") as fp:
        json.dump(report.to_dict(), fp, indent=2)
