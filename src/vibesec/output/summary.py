"""Plain-text security summary for AI coding assistants.

The summary file is rewritten after every scan. It states the project's
current status and the rules generated code must follow, so it can be fed
to an assistant as context.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path

from vibesec.config import VibeSecurityConfig
from vibesec.output.recipes import generate_bulk_rls_recipes, tables_needing_recipes
from vibesec.scanner.base import IssueCategory, SecurityIssue, Severity

logger = logging.getLogger(__name__)

RLS_CATEGORIES = (IssueCategory.RLS_MISSING, IssueCategory.RLS_NO_AUTH, IssueCategory.RLS_CHECK)

TABLE_STATUS = {
    "rls-disabled": "RLS DISABLED",
    "rls-no-policy": "RLS enabled, no policies",
    "rls-no-auth": "auth.uid() policy missing",
    "rls-ok": "protected",
    "rls-unknown": "not found in the database",
}


def _status_line(issues: list[SecurityIssue]) -> str:
    critical = sum(1 for i in issues if i.severity == Severity.CRITICAL)
    warning = sum(1 for i in issues if i.severity == Severity.WARNING)
    info = sum(1 for i in issues if i.severity == Severity.INFO)

    if critical:
        return f"STATUS: CRITICAL - {critical} critical, {warning} warning, {info} info"
    if warning:
        return f"STATUS: WARNING - {warning} warning, {info} info"
    return "STATUS: CLEAN - no known security issues"


def generate_summary(
    config: VibeSecurityConfig,
    issues: list[SecurityIssue],
    now: float | None = None,
) -> str:
    """Render the summary text.

    Args:
        config: Policy snapshot the scan ran with.
        issues: Final issue list of the scan.
        now: Timestamp for the header (defaults to the current time).
    """
    stamp = datetime.fromtimestamp(now if now is not None else time.time())
    prefix = config.secret_scanner.exposed_prefix

    exposed_keys: list[str] = []
    tables: dict[str, str] = {}
    for issue in issues:
        if issue.category == IssueCategory.SECRET_LEAK and issue.key and issue.key not in exposed_keys:
            exposed_keys.append(issue.key)
        if issue.category in RLS_CATEGORIES and issue.table and issue.table not in tables:
            tables[issue.table] = TABLE_STATUS.get(issue.rule_id or "", "needs review")

    sqli_count = sum(1 for i in issues if i.id.startswith("sqli-"))
    whitelisted = config.rls_scanner.whitelisted_tables

    lines = [
        "# VIBE SECURITY SUMMARY",
        "# Generated by vibesec. Do not edit, it is rewritten on every scan.",
        f"# Last update: {stamp:%Y-%m-%d %H:%M:%S}",
        "# Give this file to your AI assistant as project context.",
        "",
        "## PROJECT SECURITY STATUS",
        "",
        _status_line(issues),
        "",
        "## MANDATORY SECURITY RULES",
        "",
        "### 1. ENVIRONMENT VARIABLES",
        f"- The {prefix} prefix is only for values that are safe in the browser.",
        f"- These patterns must never be used with {prefix}:",
    ]
    for pattern in config.secret_scanner.sensitive_patterns:
        lines.append(
            f"  - {pattern.pattern} -> {pattern.severity.value.upper()}: {pattern.message}"
        )
    lines.append("")

    if exposed_keys:
        lines.append("Currently EXPOSED keys:")
        lines.extend(f"  - {key}" for key in exposed_keys)
        lines.append("")

    lines.extend(
        [
            "### 2. ROW LEVEL SECURITY (RLS)",
            "- RLS is mandatory on every table.",
            "- Every table needs policies based on auth.uid().",
            f"- Whitelisted tables: {', '.join(whitelisted) if whitelisted else 'none'}",
            "",
        ]
    )
    if tables:
        lines.append("Tables used by the project:")
        lines.extend(f"  - {table}: {status}" for table, status in tables.items())
        lines.append("")

    lines.extend(
        [
            "### 3. SQL INJECTION",
            "- Never use template literals (${}) in rpc() arguments.",
            "- Never build raw SQL with string concatenation (+).",
            "- Parameterized queries are mandatory.",
            "- Never embed user input directly in filter() or or().",
            "",
        ]
    )
    if sqli_count:
        lines.append(f"Currently {sqli_count} SQL injection risk(s) detected.")
        lines.append("")

    lines.extend(
        [
            "### 4. API KEYS",
            "- Serper.dev, OpenAI, Anthropic and Google AI keys are server-only.",
            "- Proxy these services through API routes (/api/*).",
            '- Files marked "use client" must not call these services directly.',
            "",
        ]
    )

    if issues:
        lines.append("## ACTIVE SECURITY ISSUES")
        lines.append("")
        for issue in sorted(issues, key=lambda i: i.severity.rank, reverse=True):
            lines.append(f"[{issue.severity.value.upper()}] {issue.title}")
            if issue.location:
                lines.append(f"   {issue.location}")
        lines.append("")

    recipe_tables = tables_needing_recipes(issues)
    if recipe_tables:
        lines.extend(
            [
                "## REMEDIATION SQL",
                "",
                "Run this in the Supabase SQL editor to enable RLS:",
                "",
                "```sql",
                generate_bulk_rls_recipes(recipe_tables),
                "```",
                "",
            ]
        )

    lines.extend(
        [
            "---",
            "Regenerated by `vibesec scan` and `vibesec watch`.",
            "Customize the rules in vibesec.toml.",
        ]
    )
    return "\n".join(lines) + "\n"


def write_summary(
    project_root: Path,
    config: VibeSecurityConfig,
    issues: list[SecurityIssue],
) -> Path:
    """Rewrite the summary file under the project root.

    Returns:
        Path of the written file.
    """
    path = project_root / config.reporter.summary_file
    path.write_text(generate_summary(config, issues), encoding="utf-8")
    logger.info("%s updated", config.reporter.summary_file)
    return path


class SummaryWriter:
    """Engine sink rewriting the summary file after each scan."""

    def __call__(
        self,
        issues: list[SecurityIssue],
        config: VibeSecurityConfig,
        project_root: Path,
    ) -> None:
        write_summary(project_root, config, issues)
