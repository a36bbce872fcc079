"""Base types shared by every scanner.

Defines the issue record, its identity rules, the per-scanner result and the
``Scanner`` interface the engine drives.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from vibesec.config import VibeSecurityConfig


class Severity(str, Enum):
    """Issue severity, ranked CRITICAL > WARNING > INFO."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str | Severity, default: Severity | None = None) -> Severity:
        """Parse a severity name, falling back to ``default`` (WARNING)."""
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.WARNING


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.CRITICAL: 3,
    Severity.WARNING: 2,
    Severity.INFO: 1,
}


class IssueCategory(str, Enum):
    """Category of a security issue."""

    SECRET_LEAK = "secret-leak"
    RLS_MISSING = "rls-missing"
    RLS_NO_AUTH = "rls-no-auth"
    RLS_CHECK = "rls-check"
    GENERAL = "general"


def make_issue_id(
    kind: str,
    rule: str,
    file: str | None = None,
    line: int | None = None,
) -> str:
    """Build a stable issue id.

    The id depends only on the detector kind, the rule, the file and the
    line, so re-scanning unchanged content yields the same id.

    Args:
        kind: Detector namespace (e.g. "sqli", "secret").
        rule: Rule identifier within the detector.
        file: Project-relative file path, if any.
        line: 1-based line number, if any.

    Returns:
        The joined identifier, e.g. "sqli-raw-sql-template-literal-src/db.ts-12".
    """
    parts = [kind, rule]
    if file:
        parts.append(file)
    if line is not None:
        parts.append(str(line))
    return "-".join(parts)


@dataclass
class SecurityIssue:
    """A single security finding.

    Attributes:
        id: Stable identity, see ``make_issue_id``.
        category: Issue category.
        severity: Issue severity.
        title: One-line human readable title.
        message: Multi-line explanation, including remediation hints.
        file: Project-relative file path.
        line: 1-based line number.
        key: Offending environment variable name (secret/API-key findings).
        table: Offending database table (RLS findings).
        rule_id: Rule that produced the finding.
        scanner: Name of the scanner that produced the finding.
        timestamp: Creation time of this finding instance (epoch seconds).
    """

    id: str
    category: IssueCategory
    severity: Severity
    title: str
    message: str
    file: str | None = None
    line: int | None = None
    key: str | None = None
    table: str | None = None
    rule_id: str | None = None
    scanner: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def location(self) -> str | None:
        """Return ``file:line`` (or just the file) when known."""
        if not self.file:
            return None
        if self.line:
            return f"{self.file}:{self.line}"
        return self.file

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "key": self.key,
            "table": self.table,
            "timestamp": self.timestamp,
        }


@dataclass
class ScanResult:
    """Output of a single scanner invocation."""

    scanner_name: str
    issues: list[SecurityIssue] = field(default_factory=list)
    scanned_at: float = field(default_factory=time.time)
    duration_ms: int = 0
    error: str | None = None

    @property
    def has_error(self) -> bool:
        """Check if the scanner reported an error."""
        return self.error is not None


class Scanner(ABC):
    """Interface implemented by the four built-in scanners.

    Implementations must:
    - Never raise for unreadable files or unreachable dependencies
    - Build their issue list privately and return a fresh ScanResult
    - Not touch any state shared with other scanners
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Detector kind, e.g. "secrets"."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description."""
        ...

    def is_enabled(self, config: VibeSecurityConfig) -> bool:
        """Check whether the scanner should run under ``config``."""
        return True

    @abstractmethod
    def scan(self, project_root: Path, config: VibeSecurityConfig) -> ScanResult:
        """Scan the project.

        Args:
            project_root: Root directory of the project.
            config: Policy snapshot for this run.

        Returns:
            ScanResult with the issues found.
        """
        ...

    def _result(self, issues: list[SecurityIssue], start_time: float) -> ScanResult:
        return ScanResult(
            scanner_name=self.name,
            issues=issues,
            scanned_at=time.time(),
            duration_ms=int((time.time() - start_time) * 1000),
        )
