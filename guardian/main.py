import argparse
import logging
import os
import sys

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from . import __version__
from .config import default_config_path, load_scan_config
from .models import ConfigError, RuleCategory, ScanConfig, Severity
from .reporter import (
    export_json,
    print_banner,
    print_findings,
    print_report_list,
    print_rules,
    print_summary,
)
from .service import RuleService, ScanService

# stderr for progress/status, stdout for results (pipeable)
stderr_console = Console(stderr=True)
stdout_console = Console()

SEVERITY_CHOICES = [s.label for s in sorted(Severity, reverse=True)]
CATEGORY_CHOICES = [c.value for c in RuleCategory]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guardian",
        description="Scan a source tree against security and compliance rules and track findings across scans.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging and code snippets in findings",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Scan a project and save a report")
    scan.add_argument("path", nargs="?", default=".", help="Project root (default: current directory)")
    scan.add_argument("--config", metavar="FILE", help="YAML scan config (default: <path>/.securecode/config.yaml)")
    scan.add_argument("--include", nargs="+", metavar="GLOB", help="Include globs (replace configured ones)")
    scan.add_argument("--exclude", nargs="+", metavar="GLOB", help="Exclude globs (replace configured ones)")
    scan.add_argument("--enable-rule", nargs="+", metavar="ID", help="Only run these rule ids")
    scan.add_argument("--disable-rule", nargs="+", metavar="ID", help="Skip these rule ids")
    scan.add_argument("--rules-dir", metavar="DIR", help="Custom rules directory relative to the project root")
    scan.add_argument("--min-severity", choices=SEVERITY_CHOICES, help="Minimum rule severity to run")
    scan.add_argument("--json-output", metavar="FILE", help="Also export the report to a JSON file")
    scan.add_argument("--show-closed", action="store_true", help="List closed findings too")

    report = subparsers.add_parser("report", help="Show stored reports")
    report.add_argument("path", nargs="?", default=".", help="Project root (default: current directory)")
    group = report.add_mutually_exclusive_group()
    group.add_argument("--id", dest="report_id", help="Show the report with this id")
    group.add_argument("--all", action="store_true", help="List all stored reports")
    report.add_argument("--show-closed", action="store_true", help="List closed findings too")

    rules = subparsers.add_parser("rules", help="List active rules")
    rules.add_argument("path", nargs="?", default=".", help="Project root (default: current directory)")
    rules.add_argument("--category", choices=CATEGORY_CHOICES)
    rules.add_argument("--severity", choices=SEVERITY_CHOICES)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def resolve_config(args: argparse.Namespace) -> ScanConfig:
    config = load_scan_config(args.config or default_config_path(args.path))
    if args.include:
        config.include_patterns = args.include
    if args.exclude:
        config.exclude_patterns = args.exclude
    if args.enable_rule:
        config.enabled_rules = args.enable_rule
    if args.disable_rule:
        config.disabled_rules = args.disable_rule
    if args.rules_dir:
        config.custom_rules_path = args.rules_dir
    if args.min_severity:
        config.min_severity = Severity.parse(args.min_severity)
    return config


def run_scan(args: argparse.Namespace) -> int:
    if not os.path.isdir(args.path):
        stderr_console.print(f"[red]Not a directory: {args.path}[/red]")
        return 2

    try:
        config = resolve_config(args)
    except ConfigError as e:
        stderr_console.print(f"[red]{e}[/red]")
        return 2

    print_banner(stderr_console)
    service = ScanService(args.path)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=stderr_console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Scanning...", total=None)

        def on_progress(fpath: str, idx: int, total: int) -> None:
            if progress.tasks[0].total is None:
                progress.update(task_id, total=total)
            progress.update(task_id, completed=idx + 1, description=f"Scanning {fpath[-60:]}")

        try:
            report, result = service.execute_scan(config, progress_callback=on_progress)
        except KeyboardInterrupt:
            stderr_console.print("\n[yellow]Scan interrupted.[/yellow]")
            return 130

    print_findings(stdout_console, report, verbose=args.verbose, show_closed=args.show_closed)
    print_summary(stdout_console, report, result)

    if args.json_output:
        export_json(report, args.json_output)
        stderr_console.print(f"\n[green]Report exported to {args.json_output}[/green]")

    # Exit code: 1 if critical or high findings are still active
    has_serious = any(
        v.severity >= Severity.HIGH for v in report.active_vulnerabilities
    )
    return 1 if has_serious else 0


def run_report(args: argparse.Namespace) -> int:
    service = ScanService(args.path)
    if args.all:
        print_report_list(stdout_console, service.all_reports())
        return 0

    report = service.report_by_id(args.report_id) if args.report_id else service.latest_report()
    if report is None:
        stderr_console.print("[yellow]No report found.[/yellow]")
        return 1
    print_findings(stdout_console, report, verbose=args.verbose, show_closed=args.show_closed)
    print_summary(stdout_console, report)
    return 0


def run_rules(args: argparse.Namespace) -> int:
    try:
        config = load_scan_config(default_config_path(args.path))
    except ConfigError as e:
        stderr_console.print(f"[red]{e}[/red]")
        return 2

    service = RuleService(args.path, config)
    rules = service.all_rules()
    if args.category:
        rules = [r for r in rules if r.category == RuleCategory.parse(args.category)]
    if args.severity:
        rules = [r for r in rules if r.severity == Severity.parse(args.severity)]
    print_rules(stdout_console, rules)
    return 0


COMMANDS = {
    "scan": run_scan,
    "report": run_report,
    "rules": run_rules,
}


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    sys.exit(COMMANDS[args.command](args))


if __name__ == "__main__":
    main()
