"""RLS authority interfaces for multiple backends."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from vibesec.authority.base import (
    AuthorityError,
    AuthorityNotConfiguredError,
    RlsAuthority,
    TableProtection,
)

if TYPE_CHECKING:
    from vibesec.config import RlsScannerConfig


class AuthorityKind(Enum):
    """Supported RLS authorities."""

    AUTO = "auto"
    HTTP = "http"
    POSTGRES = "postgres"


def get_rls_authority(settings: RlsScannerConfig) -> RlsAuthority:
    """Factory to create the RLS authority.

    Args:
        settings: RLS scanner settings with credentials already resolved.

    Returns:
        Configured RlsAuthority instance

    Raises:
        AuthorityNotConfiguredError: If credentials or the optional driver
            are missing, or the authority kind is unknown
    """
    try:
        kind = AuthorityKind(settings.authority)
    except ValueError as e:
        raise AuthorityNotConfiguredError(
            f"Unsupported RLS authority: {settings.authority!r}"
        ) from e

    if kind == AuthorityKind.AUTO:
        if settings.database_url:
            kind = AuthorityKind.POSTGRES
        elif settings.supabase_url and settings.supabase_service_role_key:
            kind = AuthorityKind.HTTP
        else:
            raise AuthorityNotConfiguredError(
                "No database credentials found. Set DATABASE_URL, or SUPABASE_URL "
                "and SUPABASE_SERVICE_ROLE_KEY."
            )

    if kind == AuthorityKind.POSTGRES:
        try:
            from vibesec.authority.postgres import PostgresRlsAuthority
        except ImportError as e:
            raise AuthorityNotConfiguredError(
                "Direct database checks require additional dependencies. "
                "Install with: pip install vibesec[postgres]"
            ) from e
        return PostgresRlsAuthority(settings.database_url, timeout=settings.timeout_seconds)

    from vibesec.authority.http import HttpRlsAuthority

    return HttpRlsAuthority(
        settings.supabase_url,
        settings.supabase_service_role_key,
        timeout=settings.timeout_seconds,
    )


__all__ = [
    "AuthorityError",
    "AuthorityKind",
    "AuthorityNotConfiguredError",
    "RlsAuthority",
    "TableProtection",
    "get_rls_authority",
]
