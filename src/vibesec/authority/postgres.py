"""RLS authority backed by a direct PostgreSQL connection."""

from __future__ import annotations

import logging

import psycopg

from vibesec.authority.base import (
    AuthorityError,
    AuthorityNotConfiguredError,
    RlsAuthority,
    TableProtection,
    validate_table_name,
)

logger = logging.getLogger(__name__)

TABLE_QUERY = """
SELECT
  c.relrowsecurity,
  (SELECT count(*) FROM pg_policy p WHERE p.polrelid = c.oid),
  EXISTS (
    SELECT 1 FROM pg_policy p
    WHERE p.polrelid = c.oid
      AND (
        coalesce(pg_get_expr(p.polqual, p.polrelid), '') LIKE '%%auth.uid()%%'
        OR coalesce(pg_get_expr(p.polwithcheck, p.polrelid), '') LIKE '%%auth.uid()%%'
      )
  )
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = 'public'
  AND c.relkind = 'r'
  AND c.relname = %s
"""


class PostgresRlsAuthority(RlsAuthority):
    """Reads RLS state from the system catalogs."""

    def __init__(self, database_url: str, timeout: float = 10.0) -> None:
        if not database_url:
            raise AuthorityNotConfiguredError("DATABASE_URL is not set.")
        self.database_url = database_url
        self.timeout = timeout
        self._conn: psycopg.Connection | None = None

    @property
    def name(self) -> str:
        return "postgres"

    def _connect(self) -> psycopg.Connection:
        if self._conn is not None:
            return self._conn

        connect_timeout = max(1, int(self.timeout))
        try:
            self._conn = psycopg.connect(
                self.database_url, sslmode="require", connect_timeout=connect_timeout
            )
        except psycopg.OperationalError as e:
            if "SSL" not in str(e):
                raise AuthorityError(f"Could not connect to the database: {e}") from e
            logger.debug("Server refused SSL, retrying without it")
            try:
                self._conn = psycopg.connect(
                    self.database_url, sslmode="disable", connect_timeout=connect_timeout
                )
            except psycopg.Error as retry_error:
                raise AuthorityError(
                    f"Could not connect to the database: {retry_error}"
                ) from retry_error
        except psycopg.Error as e:
            raise AuthorityError(f"Could not connect to the database: {e}") from e
        return self._conn

    def check_table(self, table: str) -> TableProtection | None:
        validate_table_name(table)
        conn = self._connect()
        try:
            with conn.cursor() as cur:
                cur.execute(TABLE_QUERY, (table,))
                row = cur.fetchone()
        except psycopg.Error as e:
            raise AuthorityError(f"Catalog query failed for '{table}': {e}") from e

        if row is None:
            return None
        rls_enabled, policy_count, has_identity_policy = row
        return TableProtection(
            table=table,
            rls_enabled=bool(rls_enabled),
            policy_count=int(policy_count),
            has_identity_policy=bool(has_identity_policy),
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
