"""API-key guardian - keeps third-party service keys on the server.

Two checks per rule:
- env files publishing the service key with the client-exposed prefix
- client-side source files referencing the service or its key
"""

from __future__ import annotations

import re
import time
from pathlib import Path
from typing import TYPE_CHECKING

from vibesec.core.parser import EnvParser
from vibesec.scanner.base import (
    IssueCategory,
    Scanner,
    ScanResult,
    SecurityIssue,
    Severity,
    make_issue_id,
)
from vibesec.scanner.patterns import (
    API_KEY_RULES,
    DEFAULT_CLIENT_PATHS,
    USE_CLIENT_DIRECTIVE,
    ApiKeyRule,
    compile_user_pattern,
    mask_value,
)
from vibesec.scanner.sources import (
    find_env_files,
    iter_source_files,
    matches_any,
    read_text,
    relative_path,
)

if TYPE_CHECKING:
    from vibesec.config import ApiKeyRuleConfig, VibeSecurityConfig

MAX_SNIPPET_LENGTH = 120


def has_use_client_directive(content: str) -> bool:
    """Check whether the first statement of a file is ``"use client"``.

    Leading blank lines and comments are skipped.
    """
    in_block_comment = False
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if in_block_comment:
            if "*/" in line:
                in_block_comment = False
            continue
        if not line or line.startswith("//"):
            continue
        if line.startswith("/*"):
            in_block_comment = "*/" not in line
            continue
        return bool(USE_CLIENT_DIRECTIVE.match(line))
    return False


def rule_from_config(rule_config: ApiKeyRuleConfig) -> ApiKeyRule:
    """Build a rule from a user-defined config entry.

    Invalid code patterns are dropped.
    """
    code_patterns = tuple(
        compiled
        for pattern in rule_config.code_patterns
        if (compiled := compile_user_pattern(pattern, 0)) is not None
    )
    return ApiKeyRule(
        id=rule_config.id,
        service=rule_config.service,
        env_key_patterns=tuple(rule_config.env_key_patterns),
        code_patterns=code_patterns,
        client_paths=tuple(rule_config.client_paths) or DEFAULT_CLIENT_PATHS,
        message=rule_config.message or f"The {rule_config.service} key is used on the client.",
        fix=rule_config.fix or "// Right: call the API from an API route.",
    )


class ApiKeyGuardian(Scanner):
    """Detects service API keys that reach the browser."""

    def __init__(self, rules: list[ApiKeyRule] | None = None) -> None:
        self.rules = rules if rules is not None else API_KEY_RULES

    @property
    def name(self) -> str:
        return "api-keys"

    @property
    def description(self) -> str:
        return "Service API keys used from client-side code"

    def is_enabled(self, config: VibeSecurityConfig) -> bool:
        return config.api_key_guardian.enabled

    def scan(self, project_root: Path, config: VibeSecurityConfig) -> ScanResult:
        start_time = time.time()
        rules = list(self.rules) + [
            rule_from_config(rule) for rule in config.api_key_guardian.rules
        ]

        issues = self._check_env_files(project_root, config, rules)
        issues.extend(self._check_source_files(project_root, config, rules))
        return self._result(issues, start_time)

    def _check_env_files(
        self,
        project_root: Path,
        config: VibeSecurityConfig,
        rules: list[ApiKeyRule],
    ) -> list[SecurityIssue]:
        prefix = config.secret_scanner.exposed_prefix
        if not prefix:
            return []

        parser = EnvParser()
        issues: list[SecurityIssue] = []
        for path in find_env_files(project_root, config.secret_scanner.env_files):
            content = read_text(path)
            if content is None:
                continue
            rel_file = relative_path(path, project_root)

            for var in parser.parse_string(content).entries:
                if not var.name.startswith(prefix):
                    continue
                stripped = var.name[len(prefix):]
                for rule in rules:
                    if not _key_matches(rule, var.name, stripped):
                        continue
                    issues.append(
                        SecurityIssue(
                            id=make_issue_id("apikey", f"env-{rule.id}", rel_file, var.line_number),
                            category=IssueCategory.SECRET_LEAK,
                            severity=Severity.CRITICAL,
                            title=f"{rule.service} API key is exposed with {prefix}",
                            message="\n".join(
                                [
                                    rule.message,
                                    "",
                                    f"Location: {rel_file}:{var.line_number}",
                                    f"Entry: {var.name}={mask_value(var.value)}",
                                    "",
                                    f"Fix: remove the {prefix} prefix and move the "
                                    "API call into an API route.",
                                    "",
                                    rule.fix,
                                ]
                            ),
                            file=rel_file,
                            line=var.line_number,
                            key=var.name,
                            rule_id=rule.id,
                            scanner=self.name,
                        )
                    )
        return issues

    def _check_source_files(
        self,
        project_root: Path,
        config: VibeSecurityConfig,
        rules: list[ApiKeyRule],
    ) -> list[SecurityIssue]:
        settings = config.rls_scanner
        server_paths = config.api_key_guardian.server_paths
        issues: list[SecurityIssue] = []

        for path in iter_source_files(
            project_root, settings.scan_dirs, settings.extensions, settings.exclude_dirs
        ):
            content = read_text(path)
            if content is None:
                continue
            rel_file = relative_path(path, project_root)
            directive = has_use_client_directive(content)
            lines = content.splitlines()

            for rule in rules:
                if not self._is_client_file(rel_file, directive, rule, server_paths):
                    continue
                for line_num, line in enumerate(lines, start=1):
                    if not any(p.search(line) for p in rule.code_patterns):
                        continue
                    issues.append(self._code_issue(rule, rel_file, line_num, line))

        return issues

    @staticmethod
    def _is_client_file(
        rel_file: str,
        directive: bool,
        rule: ApiKeyRule,
        server_paths: list[str],
    ) -> bool:
        if directive:
            return True
        return matches_any(rel_file, rule.client_paths) and not matches_any(
            rel_file, server_paths
        )

    def _code_issue(
        self, rule: ApiKeyRule, rel_file: str, line_num: int, line: str
    ) -> SecurityIssue:
        snippet = line.strip()[:MAX_SNIPPET_LENGTH]
        return SecurityIssue(
            id=make_issue_id("apikey", f"code-{rule.id}", rel_file, line_num),
            category=IssueCategory.SECRET_LEAK,
            severity=Severity.WARNING,
            title=f"{rule.service} is referenced from client-side code",
            message="\n".join(
                [
                    f"'{rel_file}' runs in the browser and references {rule.service}.",
                    "",
                    f"Location: {rel_file}:{line_num}",
                    f"Code: {snippet}",
                    "",
                    rule.message,
                    "",
                    rule.fix,
                ]
            ),
            file=rel_file,
            line=line_num,
            rule_id=rule.id,
            scanner=self.name,
        )


def _key_matches(rule: ApiKeyRule, key: str, stripped: str) -> bool:
    for pattern in rule.env_key_patterns:
        compiled = compile_user_pattern(pattern, re.IGNORECASE)
        if compiled is not None and (compiled.search(key) or compiled.search(stripped)):
            return True
    return False
