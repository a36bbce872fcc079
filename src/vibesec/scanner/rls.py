"""RLS scanner - checks row-level security for every table the code touches.

Table names are collected from literal ``.from('table')`` calls in the source
tree and then looked up through an RLS authority (REST API or a direct
database connection).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from vibesec.authority import (
    AuthorityError,
    RlsAuthority,
    TableProtection,
    get_rls_authority,
)
from vibesec.scanner.base import (
    IssueCategory,
    Scanner,
    ScanResult,
    SecurityIssue,
    Severity,
    make_issue_id,
)
from vibesec.scanner.patterns import TABLE_ACCESSOR_PATTERN
from vibesec.scanner.sources import iter_source_files, read_text, relative_path

if TYPE_CHECKING:
    from vibesec.config import RlsScannerConfig, VibeSecurityConfig

MAX_CONTEXT_LENGTH = 100
MAX_LISTED_USAGES = 5

AuthorityFactory = Callable[["RlsScannerConfig"], RlsAuthority]


@dataclass(frozen=True)
class TableUsage:
    """One place in the source tree that accesses a table."""

    file: str
    line: int
    context: str


def find_table_usages(
    project_root: Path, settings: RlsScannerConfig
) -> dict[str, list[TableUsage]]:
    """Group literal table accesses by table name.

    Files below a directory listed in ``ignore_usage_paths`` are skipped.

    Returns:
        Mapping of table name to its usages, in discovery order.
    """
    usages: dict[str, list[TableUsage]] = {}
    ignored = [p.strip("/") for p in settings.ignore_usage_paths if p.strip("/")]

    for path in iter_source_files(
        project_root, settings.scan_dirs, settings.extensions, settings.exclude_dirs
    ):
        rel_file = relative_path(path, project_root)
        if any(rel_file == p or rel_file.startswith(f"{p}/") for p in ignored):
            continue

        content = read_text(path)
        if content is None:
            continue

        for line_num, line in enumerate(content.splitlines(), start=1):
            for match in TABLE_ACCESSOR_PATTERN.finditer(line):
                context = line.strip()[:MAX_CONTEXT_LENGTH]
                usages.setdefault(match.group(1), []).append(
                    TableUsage(file=rel_file, line=line_num, context=context)
                )

    return usages


class RlsScanner(Scanner):
    """Reports tables accessed from code that lack row-level security."""

    def __init__(self, authority_factory: AuthorityFactory | None = None) -> None:
        """Initialize the scanner.

        Args:
            authority_factory: Builds the authority from the RLS settings.
                Defaults to ``get_rls_authority``.
        """
        self.authority_factory = authority_factory or get_rls_authority

    @property
    def name(self) -> str:
        return "rls"

    @property
    def description(self) -> str:
        return "Row-level security of tables accessed from code"

    def is_enabled(self, config: VibeSecurityConfig) -> bool:
        return config.rls_scanner.enabled

    def scan(self, project_root: Path, config: VibeSecurityConfig) -> ScanResult:
        start_time = time.time()
        settings = config.rls_scanner.resolved()

        usages = find_table_usages(project_root, settings)
        whitelisted = set(settings.whitelisted_tables)
        tables = {name: uses for name, uses in usages.items() if name not in whitelisted}
        if not tables:
            return self._result([], start_time)

        try:
            protections = self._lookup(settings, list(tables))
        except AuthorityError as e:
            return self._result([self._unavailable_issue(str(e), list(tables))], start_time)

        issues = [
            self._classify(table, protections[table], tables[table]) for table in tables
        ]
        return self._result(issues, start_time)

    def _lookup(
        self, settings: RlsScannerConfig, tables: list[str]
    ) -> dict[str, TableProtection | None]:
        with self.authority_factory(settings) as authority:
            return {table: authority.check_table(table) for table in tables}

    def _classify(
        self,
        table: str,
        protection: TableProtection | None,
        usages: list[TableUsage],
    ) -> SecurityIssue:
        first = usages[0]
        where = _format_usages(usages)

        if protection is None:
            rule, category, severity = "unknown", IssueCategory.RLS_CHECK, Severity.INFO
            title = f"Table '{table}' was not found in the public schema"
            body = (
                f"'{table}' is accessed from code but the database does not know it. "
                "It may live in another schema, be a view, or not exist yet."
            )
        elif not protection.rls_enabled:
            rule, category, severity = "disabled", IssueCategory.RLS_MISSING, Severity.CRITICAL
            title = f"RLS is disabled on '{table}'"
            body = (
                f"Row-level security is not enabled on '{table}'. Anyone holding "
                "the anon key can read and write every row.\n\n"
                f"Fix: ALTER TABLE public.{table} ENABLE ROW LEVEL SECURITY;"
            )
        elif protection.policy_count == 0:
            rule, category, severity = "no-policy", IssueCategory.RLS_CHECK, Severity.WARNING
            title = f"RLS is enabled on '{table}' but it has no policies"
            body = (
                f"'{table}' has RLS enabled and no policies, so nobody can read it. "
                "Add policies unless that is intentional."
            )
        elif not protection.has_identity_policy:
            rule, category, severity = "no-auth", IssueCategory.RLS_NO_AUTH, Severity.WARNING
            title = f"No auth.uid() policy on '{table}'"
            body = (
                f"RLS is enabled on '{table}', but no policy checks auth.uid(). "
                "Rows are not scoped to the signed-in user.\n\n"
                "Fix: add a policy such as\n"
                f'   CREATE POLICY "Users read own rows" ON public.{table}\n'
                "     FOR SELECT USING (auth.uid() = user_id);"
            )
        else:
            rule, category, severity = "ok", IssueCategory.RLS_CHECK, Severity.INFO
            title = f"'{table}' is protected by RLS"
            body = f"RLS is enabled on '{table}' with an auth.uid() policy."

        return SecurityIssue(
            id=make_issue_id("rls", f"{rule}-{table}"),
            category=category,
            severity=severity,
            title=title,
            message=f"{body}\n\nUsed at:\n{where}",
            file=first.file,
            line=first.line,
            table=table,
            rule_id=f"rls-{rule}",
            scanner=self.name,
        )

    def _unavailable_issue(self, reason: str, tables: list[str]) -> SecurityIssue:
        return SecurityIssue(
            id=make_issue_id("rls", "authority-unavailable"),
            category=IssueCategory.RLS_CHECK,
            severity=Severity.WARNING,
            title="RLS status could not be verified",
            message=(
                f"{reason}\n\n"
                f"Tables that could not be verified: {', '.join(sorted(tables))}"
            ),
            rule_id="rls-authority-unavailable",
            scanner=self.name,
        )


def _format_usages(usages: list[TableUsage]) -> str:
    lines = [f"   {u.file}:{u.line}  {u.context}" for u in usages[:MAX_LISTED_USAGES]]
    if len(usages) > MAX_LISTED_USAGES:
        lines.append(f"   ... and {len(usages) - MAX_LISTED_USAGES} more")
    return "\n".join(lines)
