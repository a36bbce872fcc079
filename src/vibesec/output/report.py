"""Issue reports for the terminal, JSON consumers and the browser overlay."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from vibesec.output.recipes import generate_bulk_rls_recipes, tables_needing_recipes
from vibesec.scanner.base import SecurityIssue, Severity

if TYPE_CHECKING:
    from vibesec.config import VibeSecurityConfig

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}


def count_by_severity(issues: list[SecurityIssue]) -> dict[str, int]:
    """Count issues per severity name."""
    counts = {severity.value: 0 for severity in Severity}
    for issue in issues:
        counts[issue.severity.value] += 1
    return counts


def format_rich(issues: list[SecurityIssue], console: Console) -> None:
    """Print a severity-sorted report with counts and remediation SQL."""
    counts = count_by_severity(issues)

    if not issues:
        console.print(
            Panel(
                "[bold green]No security issues found.[/bold green]",
                title="vibesec",
                border_style="green",
            )
        )
        return

    summary = Table.grid(padding=(0, 2))
    summary.add_row(
        f"[bold red]{counts['critical']} critical[/bold red]",
        f"[yellow]{counts['warning']} warning[/yellow]",
        f"[blue]{counts['info']} info[/blue]",
    )
    border = "red" if counts["critical"] else "yellow" if counts["warning"] else "blue"
    console.print(Panel(summary, title="vibesec security report", border_style=border))

    ordered = sorted(issues, key=lambda issue: issue.severity.rank, reverse=True)
    for issue in ordered:
        style = SEVERITY_STYLES[issue.severity]
        header = f"[{style}]{issue.severity.value.upper()}[/{style}] {escape(issue.title)}"
        if issue.location:
            header += f" [dim]({escape(issue.location)})[/dim]"
        console.print(header)
        console.print(issue.message, markup=False, highlight=False)
        console.print()

    tables = tables_needing_recipes(issues)
    if tables:
        console.print("[bold]Remediation SQL[/bold]")
        console.print(Syntax(generate_bulk_rls_recipes(tables), "sql", word_wrap=True))


def format_browser(issues: list[SecurityIssue], now: float | None = None) -> dict[str, Any]:
    """Build the feed served to the in-browser overlay."""
    return {
        "timestamp": int((now if now is not None else time.time()) * 1000),
        "issueCount": len(issues),
        "summary": count_by_severity(issues),
        "issues": [issue.to_dict() for issue in issues],
    }


def format_json(issues: list[SecurityIssue], now: float | None = None) -> str:
    """Serialize the browser feed as JSON."""
    return json.dumps(format_browser(issues, now), indent=2)


class TerminalReporter:
    """Engine sink printing the rich report after each scan."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def __call__(
        self,
        issues: list[SecurityIssue],
        config: VibeSecurityConfig,
        project_root: Path,
    ) -> None:
        if not config.reporter.terminal:
            return
        format_rich(issues, self.console)
