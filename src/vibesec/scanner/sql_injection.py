"""SQL-injection scanner - flags query construction that interpolates values.

Each source line is matched against the anti-pattern table, then the whole
file is matched once more to catch constructions that span several lines.
Both passes share one (pattern, file, line) key so a match is reported once.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

from vibesec.scanner.base import (
    IssueCategory,
    Scanner,
    ScanResult,
    SecurityIssue,
    make_issue_id,
)
from vibesec.scanner.patterns import SQL_INJECTION_PATTERNS, SqlInjectionPattern
from vibesec.scanner.sources import iter_source_files, read_text, relative_path

if TYPE_CHECKING:
    from vibesec.config import VibeSecurityConfig

MAX_SNIPPET_LENGTH = 120


class SqlInjectionScanner(Scanner):
    """Detects injection-prone query construction in source files."""

    def __init__(self, patterns: list[SqlInjectionPattern] | None = None) -> None:
        self.patterns = patterns if patterns is not None else SQL_INJECTION_PATTERNS

    @property
    def name(self) -> str:
        return "sql-injection"

    @property
    def description(self) -> str:
        return "Injection-prone rpc(), raw SQL and filter construction"

    def is_enabled(self, config: VibeSecurityConfig) -> bool:
        return config.sql_scanner.enabled

    def scan(self, project_root: Path, config: VibeSecurityConfig) -> ScanResult:
        start_time = time.time()
        settings = config.rls_scanner
        issues: list[SecurityIssue] = []

        for path in iter_source_files(
            project_root, settings.scan_dirs, settings.extensions, settings.exclude_dirs
        ):
            content = read_text(path)
            if content is None:
                continue
            issues.extend(self.scan_content(content, relative_path(path, project_root)))

        return self._result(issues, start_time)

    def scan_content(self, content: str, rel_file: str) -> list[SecurityIssue]:
        """Scan one file's text.

        Args:
            content: File content.
            rel_file: Project-relative path used in ids and locations.

        Returns:
            One issue per distinct (pattern, line).
        """
        issues: list[SecurityIssue] = []
        seen: set[tuple[str, int]] = set()
        lines = content.splitlines()

        for line_num, line in enumerate(lines, start=1):
            for pattern in self.patterns:
                if not pattern.pattern.search(line):
                    continue
                key = (pattern.id, line_num)
                if key in seen:
                    continue
                seen.add(key)
                issues.append(self._make_issue(pattern, rel_file, line_num, line))

        # Multi-line constructions
        for pattern in self.patterns:
            for match in pattern.pattern.finditer(content):
                line_num = content.count("\n", 0, match.start()) + 1
                key = (pattern.id, line_num)
                if key in seen:
                    continue
                seen.add(key)
                line = lines[line_num - 1] if line_num <= len(lines) else ""
                issues.append(self._make_issue(pattern, rel_file, line_num, line))

        return issues

    def _make_issue(
        self,
        pattern: SqlInjectionPattern,
        rel_file: str,
        line_num: int,
        line: str,
    ) -> SecurityIssue:
        snippet = line.strip()
        if len(snippet) > MAX_SNIPPET_LENGTH:
            snippet = snippet[:MAX_SNIPPET_LENGTH] + "..."

        message = "\n".join(
            [
                pattern.message,
                "",
                f"Location: {rel_file}:{line_num}",
                f"Code: {snippet}",
                "",
                pattern.fix,
            ]
        )
        return SecurityIssue(
            id=make_issue_id("sqli", pattern.id, rel_file, line_num),
            category=IssueCategory.GENERAL,
            severity=pattern.severity,
            title=pattern.title,
            message=message,
            file=rel_file,
            line=line_num,
            rule_id=pattern.id,
            scanner=self.name,
        )
