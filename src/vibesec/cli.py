"""Command-line interface for vibesec."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from vibesec.cli_commands.scan import scan, watch
from vibesec.config import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE

app = typer.Typer(
    name="vibesec",
    help="Catch leaked secrets, missing RLS, SQL injection and client-side API keys.",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    debug: Annotated[
        bool, typer.Option("--debug", help="Enable debug logging")
    ] = False,
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app.command()(scan)
app.command()(watch)


@app.command()
def init(
    root: Annotated[
        Path, typer.Argument(help="Project root (default: current directory)")
    ] = Path("."),
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing config")
    ] = False,
) -> None:
    """Write a vibesec.toml with the default policy."""
    target = root / CONFIG_FILENAME
    if target.exists() and not force:
        console.print(f"[red]Error:[/red] {target} already exists (use --force to overwrite)")
        raise typer.Exit(code=1)

    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(
        Panel(
            f"Created [bold]{target}[/bold]\n\n"
            "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or DATABASE_URL)\n"
            "to enable the RLS checks, then run [bold]vibesec scan[/bold].",
            title="vibesec init",
        )
    )


@app.command()
def version() -> None:
    """Show vibesec version."""
    from vibesec import __version__

    console.print(f"vibesec [bold green]{__version__}[/bold green]")


if __name__ == "__main__":
    app()
