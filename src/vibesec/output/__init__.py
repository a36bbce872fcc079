"""Output sinks: terminal report, JSON feed, summary file and SQL recipes."""

from vibesec.output.recipes import (
    generate_bulk_rls_recipes,
    generate_rls_recipe,
    tables_needing_recipes,
)
from vibesec.output.report import TerminalReporter, format_browser, format_json, format_rich
from vibesec.output.summary import SummaryWriter, generate_summary, write_summary

__all__ = [
    "SummaryWriter",
    "TerminalReporter",
    "format_browser",
    "format_json",
    "format_rich",
    "generate_bulk_rls_recipes",
    "generate_rls_recipe",
    "generate_summary",
    "tables_needing_recipes",
    "write_summary",
]
