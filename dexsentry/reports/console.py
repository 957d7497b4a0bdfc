"""
Rich console report.
"""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dexsentry.models.records import AggregatedReport

SEVERITY_STYLES = {
    "CRITICAL": "red bold",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "cyan",
    "ERROR": "dim",
    "PASS": "green",
}


def render_console(report: AggregatedReport, console: Optional[Console] = None) -> None:
    console = console or Console()
    sev = report.by_severity

    console.print()
    console.print(Panel.fit(
        "[bold]DEX Security Report[/bold]",
        subtitle=report.generated_at,
    ))

    summary = Table(title="Summary", show_header=False, box=None, padding=(0, 2))
    summary.add_column(style="bold")
    summary.add_column(justify="right")
    summary.add_row("Total Tests", str(report.total_tests))
    summary.add_row("Passed", f"[green]{report.passed}[/green]")
    summary.add_row("Failed", f"[red bold]{report.failed}[/red bold]" if report.failed else "0")
    summary.add_row("Pass Rate", f"{report.pass_rate}%")
    summary.add_row("Security Score", f"{report.security_score}/10")
    for level in ("CRITICAL", "HIGH", "MEDIUM", "LOW", "ERROR"):
        if sev.get(level):
            summary.add_row(level.title(), Text(str(sev[level]), style=SEVERITY_STYLES[level]))
    console.print(summary)
    console.print()

    if report.findings:
        findings = Table(title="Findings", show_lines=True)
        findings.add_column("Severity", width=9)
        findings.add_column("Test", width=34)
        findings.add_column("Phase", width=28)
        findings.add_column("Details", width=50)
        for f in report.findings:
            findings.add_row(
                Text(f.severity.value, style=SEVERITY_STYLES.get(f.severity.value, "")),
                f.display_name,
                f.phase,
                (f.details or "Issue detected")[:120],
            )
        console.print(findings)
        console.print()

    if report.all_clear:
        console.print("[green bold]All clear: no critical or high severity issues.[/green bold]")
        console.print()

    if report.phases:
        phases = Table(title="Phase Status")
        phases.add_column("Phase", width=10)
        phases.add_column("Latest Run", width=36)
        phases.add_column("Passed", justify="right", width=8)
        for p in report.phases:
            style = "green" if p.failing == 0 else "red"
            phases.add_row(p.key, p.name, Text(f"{p.passed}/{p.total}", style=style))
        console.print(phases)
        console.print()
