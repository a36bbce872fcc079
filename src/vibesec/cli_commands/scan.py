"""Scan and watch commands.

Configuration is read from vibesec.toml (or [tool.vibesec] in
pyproject.toml):
    [rls_scanner]
    scan_dirs = ["src", "app"]
    whitelisted_tables = ["countries"]

    [reporter]
    summary_file = "vibe-summary.txt"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from vibesec.config import VibeSecurityConfig, load_config_or_default
from vibesec.output.report import TerminalReporter, format_json
from vibesec.output.summary import SummaryWriter
from vibesec.scanner.base import Severity
from vibesec.scanner.engine import ScanEngine, Sink
from vibesec.watch import Watchdog

console = Console()
logger = logging.getLogger(__name__)


def _load(root: Path, config_path: Path | None) -> VibeSecurityConfig:
    config, diagnostic = load_config_or_default(root, config_path)
    if diagnostic:
        logger.warning(diagnostic)
    return config


def _resolve_root(root: Path) -> Path:
    root = root.resolve()
    if not root.is_dir():
        console.print(f"[red]Error:[/red] Directory not found: {root}")
        raise typer.Exit(code=2)
    return root


def scan(
    root: Annotated[
        Path,
        typer.Argument(help="Project root (default: current directory)"),
    ] = Path("."),
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to vibesec.toml"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the issue feed as JSON"),
    ] = False,
    no_summary: Annotated[
        bool,
        typer.Option("--no-summary", help="Do not rewrite the summary file"),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option("--ci", help="CI mode: plain output without colors"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show scanner details"),
    ] = False,
) -> None:
    """Scan the project once.

    Exits with code 1 when any critical issue is found.
    """
    root = _resolve_root(root)
    config = _load(root, config_path)

    # Suppress colors in CI mode or JSON output
    output_console = console
    if ci or json_output:
        output_console = Console(force_terminal=False, no_color=True)

    sinks: list[Sink] = []
    if not json_output:
        sinks.append(TerminalReporter(output_console))
    if not no_summary:
        sinks.append(SummaryWriter())

    engine = ScanEngine(sinks=sinks)

    if verbose and not json_output:
        output_console.print("[bold]Scanner details:[/bold]")
        for info in engine.get_scanner_info(config):
            status = "[green]enabled[/green]" if info["enabled"] else "[dim]disabled[/dim]"
            output_console.print(f"  - {info['name']}: {status} [dim]{info['description']}[/dim]")
        output_console.print()

    issues = engine.run_full_scan(root, config)

    if verbose and not json_output:
        for result in engine.last_results:
            if result.has_error:
                output_console.print(
                    f"[yellow]Scanner {result.scanner_name} failed:[/yellow] {result.error}"
                )

    if json_output:
        print(format_json(issues))

    if any(issue.severity == Severity.CRITICAL for issue in issues):
        raise typer.Exit(code=1)


def watch(
    root: Annotated[
        Path,
        typer.Argument(help="Project root (default: current directory)"),
    ] = Path("."),
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to vibesec.toml"),
    ] = None,
) -> None:
    """Scan, then re-scan whenever watched files change (Ctrl-C to stop)."""
    root = _resolve_root(root)
    engine = ScanEngine(sinks=[TerminalReporter(console), SummaryWriter()])
    watchdog = Watchdog(root, engine, config_loader=lambda: _load(root, config_path))

    console.print(f"[bold]Watching[/bold] {root} [dim](Ctrl-C to stop)[/dim]")
    try:
        watchdog.run_forever()
    except KeyboardInterrupt:
        watchdog.stop()
        console.print("[dim]Stopped.[/dim]")
