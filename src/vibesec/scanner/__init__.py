"""Security scanning module for vibesec.

This module provides the four built-in scanners:
- SecretScanner: Sensitive keys exposed to the client in .env files
- RlsScanner: Row-level security of tables accessed from code
- SqlInjectionScanner: Injection-prone query construction
- ApiKeyGuardian: Service API keys used from client-side code

The ScanEngine (vibesec.scanner.engine) runs them and aggregates results.
"""

from vibesec.scanner.api_keys import ApiKeyGuardian
from vibesec.scanner.base import (
    IssueCategory,
    Scanner,
    ScanResult,
    SecurityIssue,
    Severity,
    make_issue_id,
)
from vibesec.scanner.rls import RlsScanner
from vibesec.scanner.secrets import SecretScanner
from vibesec.scanner.sql_injection import SqlInjectionScanner

__all__ = [
    "ApiKeyGuardian",
    "IssueCategory",
    "RlsScanner",
    "ScanResult",
    "Scanner",
    "SecretScanner",
    "SecurityIssue",
    "Severity",
    "SqlInjectionScanner",
    "make_issue_id",
]
