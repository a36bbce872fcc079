"""RLS authority backed by the Supabase REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vibesec.authority.base import (
    AuthorityError,
    AuthorityNotConfiguredError,
    RlsAuthority,
    TableProtection,
    validate_table_name,
)

logger = logging.getLogger(__name__)

CHECK_RLS_RPC = "/rest/v1/rpc/check_rls_status"
EXEC_SQL_RPC = "/rest/v1/rpc/exec_sql"

CATALOG_QUERY = """
SELECT
  c.relrowsecurity AS rls_enabled,
  (SELECT count(*) FROM pg_policy p WHERE p.polrelid = c.oid) AS policy_count,
  EXISTS (
    SELECT 1 FROM pg_policies p
    WHERE p.tablename = '{table}'
      AND p.schemaname = 'public'
      AND (p.qual::text LIKE '%auth.uid()%' OR p.with_check::text LIKE '%auth.uid()%')
  ) AS has_auth_policy
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE c.relname = '{table}'
  AND n.nspname = 'public'
"""


class HttpRlsAuthority(RlsAuthority):
    """Queries RLS state through PostgREST RPC endpoints.

    Tries the ``check_rls_status`` function first and falls back to a catalog
    query through ``exec_sql`` when that function is not installed.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the authority.

        Args:
            url: Supabase project URL.
            service_role_key: Service role key sent as apikey and bearer token.
            timeout: Request timeout in seconds.
            client: Optional preconfigured client (used by tests).
        """
        if not url or not service_role_key:
            raise AuthorityNotConfiguredError(
                "Supabase credentials are missing. Set SUPABASE_URL and "
                "SUPABASE_SERVICE_ROLE_KEY."
            )
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Content-Type": "application/json",
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
        }

    @property
    def name(self) -> str:
        return "http"

    def check_table(self, table: str) -> TableProtection | None:
        validate_table_name(table)

        response = self._post(CHECK_RLS_RPC, {"target_table": table})
        if response.is_success:
            data = self._json(response, CHECK_RLS_RPC)
            if isinstance(data, list):
                data = data[0] if data else None
            if not data:
                return None
            return self._to_protection(table, data)

        logger.debug(
            "check_rls_status returned HTTP %s for %s, trying exec_sql",
            response.status_code,
            table,
        )
        return self._check_via_catalog(table)

    def _check_via_catalog(self, table: str) -> TableProtection | None:
        response = self._post(EXEC_SQL_RPC, {"query": CATALOG_QUERY.format(table=table)})
        if not response.is_success:
            raise AuthorityError(
                "The Supabase RPC functions for RLS checks are not installed "
                f"(HTTP {response.status_code}). Check manually in the SQL editor: "
                f"SELECT relrowsecurity FROM pg_class WHERE relname = '{table}'"
            )

        rows = self._json(response, EXEC_SQL_RPC)
        if not isinstance(rows, list) or not rows:
            return None
        return self._to_protection(table, rows[0])

    def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            return self._client.post(f"{self.url}{path}", json=payload, headers=self._headers)
        except httpx.HTTPError as e:
            raise AuthorityError(f"Could not reach {self.url}: {e}") from e

    def _json(self, response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise AuthorityError(f"Unexpected non-JSON response from {self.url}{path}: {e}") from e

    @staticmethod
    def _to_protection(table: str, data: Any) -> TableProtection:
        if not isinstance(data, dict):
            raise AuthorityError(
                f"Unexpected RLS status for '{table}': expected an object, got {data!r}"
            )
        try:
            policy_count = data.get("policy_count")
            return TableProtection(
                table=table,
                rls_enabled=bool(data.get("rls_enabled", False)),
                policy_count=int(policy_count) if policy_count is not None else None,
                has_identity_policy=bool(data.get("has_auth_policy", False)),
            )
        except (TypeError, ValueError) as e:
            raise AuthorityError(f"Unexpected RLS status for '{table}': {e}") from e

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
