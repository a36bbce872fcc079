"""Secret scanner - finds sensitive keys exposed to the client in .env files.

Keys carrying the client-exposed prefix (``NEXT_PUBLIC_`` by default) are
inlined into the browser bundle. Any such key whose name matches a sensitive
pattern is reported once per (file, line).
"""

from __future__ import annotations

import time
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from vibesec.core.parser import EnvFile, EnvParser
from vibesec.scanner.base import (
    IssueCategory,
    Scanner,
    ScanResult,
    SecurityIssue,
    Severity,
    make_issue_id,
)
from vibesec.scanner.patterns import compile_user_pattern
from vibesec.scanner.sources import find_env_files, read_text, relative_path

if TYPE_CHECKING:
    import re

    from vibesec.config import SensitivePattern, VibeSecurityConfig


class SecretScanner(Scanner):
    """Detects sensitive env keys published with the client-exposed prefix."""

    @property
    def name(self) -> str:
        return "secrets"

    @property
    def description(self) -> str:
        return "Client-exposed secrets in .env files"

    def scan(self, project_root: Path, config: VibeSecurityConfig) -> ScanResult:
        start_time = time.time()
        settings = config.secret_scanner
        issues: list[SecurityIssue] = []

        env_files = self._parse_env_files(project_root, settings.env_files)
        if not env_files:
            return self._result(issues, start_time)

        # Every definition of every key, for the cross-reference note
        locations: dict[str, list[str]] = defaultdict(list)
        for rel_file, env_file in env_files:
            for var in env_file.entries:
                locations[var.name].append(f"{rel_file}:{var.line_number}")

        patterns = [
            (pattern_def, compiled)
            for pattern_def in settings.sensitive_patterns
            if (compiled := compile_user_pattern(pattern_def.pattern)) is not None
        ]
        prefix = settings.exposed_prefix

        for rel_file, env_file in env_files:
            for var in env_file.entries:
                if not prefix or not var.name.startswith(prefix):
                    continue

                stripped = var.name[len(prefix):]
                match = self._match(var.name, stripped, patterns)
                if match is None:
                    continue

                issues.append(
                    self._make_issue(
                        rel_file=rel_file,
                        line=var.line_number,
                        key=var.name,
                        stripped=stripped,
                        value_length=len(var.value),
                        pattern=match,
                        prefix=prefix,
                        server_locations=locations.get(stripped, []),
                    )
                )

        gitignore_issue = self._check_gitignore(project_root)
        if gitignore_issue is not None:
            issues.append(gitignore_issue)

        return self._result(issues, start_time)

    def _parse_env_files(
        self, project_root: Path, env_globs: list[str]
    ) -> list[tuple[str, EnvFile]]:
        parser = EnvParser()
        parsed: list[tuple[str, EnvFile]] = []
        for path in find_env_files(project_root, env_globs):
            content = read_text(path)
            if content is None:
                continue
            parsed.append((relative_path(path, project_root), parser.parse_string(content)))
        return parsed

    @staticmethod
    def _match(
        key: str,
        stripped: str,
        patterns: list[tuple[SensitivePattern, re.Pattern[str]]],
    ) -> SensitivePattern | None:
        """Return the first sensitive pattern matching either key form."""
        for pattern_def, compiled in patterns:
            if compiled.search(key) or compiled.search(stripped):
                return pattern_def
        return None

    def _make_issue(
        self,
        rel_file: str,
        line: int,
        key: str,
        stripped: str,
        value_length: int,
        pattern: SensitivePattern,
        prefix: str,
        server_locations: list[str],
    ) -> SecurityIssue:
        if value_length:
            value_note = (
                f"A value is assigned ({value_length} characters). "
                "It will be included in the client JavaScript bundle."
            )
        else:
            value_note = "The value is empty, but even declaring the key is risky."

        lines = [
            pattern.message or f"'{key}' matches the sensitive pattern '{pattern.pattern}'.",
            "",
            f"Location: {rel_file}:{line}",
            f"Key: {key}",
            value_note,
            "",
            f"Fix: remove the {prefix} prefix and read this variable only from "
            "server-side code (API routes, server components, server actions).",
        ]
        if server_locations:
            lines.extend(
                [
                    "",
                    f"Note: '{stripped}' is also defined without the prefix at "
                    f"{', '.join(server_locations)}. Remove the {prefix} version and "
                    "use the server-side one.",
                ]
            )

        return SecurityIssue(
            id=make_issue_id("secret", key, rel_file, line),
            category=IssueCategory.SECRET_LEAK,
            severity=pattern.severity,
            title=f"'{key}' is exposed to the client",
            message="\n".join(lines),
            file=rel_file,
            line=line,
            key=key,
            rule_id=pattern.pattern,
            scanner=self.name,
        )

    def _check_gitignore(self, project_root: Path) -> SecurityIssue | None:
        """Check that env files are excluded from version control."""
        gitignore = project_root / ".gitignore"
        if not gitignore.exists():
            return SecurityIssue(
                id=make_issue_id("secret", "gitignore-missing"),
                category=IssueCategory.GENERAL,
                severity=Severity.INFO,
                title="No .gitignore found next to the .env files",
                message=(
                    "The project has .env files but no .gitignore. "
                    "They can be committed by accident.\n\n"
                    "Fix: create a .gitignore containing:\n"
                    "   .env\n   .env.local\n   .env*.local"
                ),
                file=".gitignore",
                rule_id="gitignore-missing",
                scanner=self.name,
            )

        content = read_text(gitignore)
        if content is None or ".env" in content:
            return None

        return SecurityIssue(
            id=make_issue_id("secret", "gitignore-env-missing"),
            category=IssueCategory.GENERAL,
            severity=Severity.WARNING,
            title=".env files are not listed in .gitignore",
            message=(
                ".gitignore does not exclude your .env files. "
                "They can be committed to the repository by accident.\n\n"
                "Fix: add these lines to .gitignore:\n"
                "   .env\n   .env.local\n   .env*.local"
            ),
            file=".gitignore",
            rule_id="gitignore-env-missing",
            scanner=self.name,
        )
