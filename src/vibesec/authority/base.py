"""Abstract base class for RLS authorities.

An authority answers one question per table: is row-level security enabled,
how many policies exist, and does any of them scope rows to the signed-in
user.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

# Plain SQL identifier for a public table
TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class AuthorityError(Exception):
    """Base exception for authority operations."""

    pass


class AuthorityNotConfiguredError(AuthorityError):
    """No credentials or driver available for the requested authority."""

    pass


@dataclass(frozen=True)
class TableProtection:
    """Protection state of one table.

    Attributes:
        table: Table name in the public schema.
        rls_enabled: Whether row-level security is enabled.
        policy_count: Number of policies, or None when the authority
            does not report it.
        has_identity_policy: Whether a policy references ``auth.uid()``.
    """

    table: str
    rls_enabled: bool
    policy_count: int | None = None
    has_identity_policy: bool = False


def validate_table_name(table: str) -> str:
    """Ensure ``table`` is a plain SQL identifier.

    Raises:
        AuthorityError: If the name contains anything else.
    """
    if not TABLE_NAME_PATTERN.match(table):
        raise AuthorityError(f"Invalid table name: {table!r}")
    return table


class RlsAuthority(ABC):
    """Abstract interface for RLS authorities.

    Implementations must provide:
    - name: Short identifier used in diagnostics
    - check_table: Protection state of one table
    - close: Release connections
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Authority identifier (e.g., "http")."""
        ...

    @abstractmethod
    def check_table(self, table: str) -> TableProtection | None:
        """Look up the protection state of a table.

        Args:
            table: Table name in the public schema.

        Returns:
            TableProtection, or None if the authority does not know the table.

        Raises:
            AuthorityError: If the authority cannot be reached or queried.
        """
        ...

    def close(self) -> None:
        """Release any held resources."""
        return None

    def __enter__(self) -> RlsAuthority:
        return self

    def __exit__(self, *args) -> None:
        self.close()
