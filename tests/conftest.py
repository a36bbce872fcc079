"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from vibesec.authority import AuthorityError, RlsAuthority, TableProtection
from vibesec.config import VibeSecurityConfig

# Credential variables read by RlsScannerConfig.resolved()
CREDENTIAL_ENV_VARS = (
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "DATABASE_URL",
)


class FakeAuthority(RlsAuthority):
    """In-memory authority keyed by table name."""

    def __init__(
        self,
        tables: dict[str, TableProtection] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.tables = tables or {}
        self.error = error
        self.checked: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    def check_table(self, table: str) -> TableProtection | None:
        self.checked.append(table)
        if self.error is not None:
            raise self.error
        return self.tables.get(table)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    """Keep real database credentials out of every test."""
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_file(tmp_path):
    """Write a file below tmp_path, creating parent directories."""

    def _write(rel_path: str, content: str) -> Path:
        path = tmp_path / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config():
    """Default policy snapshot."""
    return VibeSecurityConfig.default()


@pytest.fixture
def fake_authority_factory():
    """Build an authority factory returning a FakeAuthority."""

    def _factory(
        tables: dict[str, TableProtection] | None = None,
        error: Exception | None = None,
    ):
        authority = FakeAuthority(tables, error)

        def factory(settings):
            return authority

        factory.authority = authority
        return factory

    return _factory


@pytest.fixture
def unreachable_authority_factory():
    """Factory whose authority fails every lookup."""

    def factory(settings):
        return FakeAuthority(error=AuthorityError("connection refused"))

    return factory


@pytest.fixture
def leaky_project(write_file, tmp_path):
    """Project with a leaked service key, an unsafe query and a client-side OpenAI call."""
    write_file(
        ".env.local",
        "NEXT_PUBLIC_SUPABASE_URL=https://abc.supabase.co\n"
        "NEXT_PUBLIC_SUPABASE_SERVICE_ROLE_KEY=eyJhbGciOiJIUzI1NiJ9.service\n",
    )
    write_file(".gitignore", "node_modules\n.env*.local\n")
    write_file(
        "src/lib/db.ts",
        "export async function find(id) {\n"
        "  const { data } = await supabase.from('profiles').select('*')\n"
        "  const q = `SELECT * FROM users WHERE id = '${id}'`\n"
        "  return data\n"
        "}\n",
    )
    write_file(
        "src/components/Chat.tsx",
        "'use client'\n"
        "import OpenAI from 'openai'\n"
        "const client = new OpenAI({ apiKey: process.env.NEXT_PUBLIC_OPENAI_API_KEY })\n",
    )
    return tmp_path
