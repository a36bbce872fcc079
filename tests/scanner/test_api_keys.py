"""Tests for the API-key guardian."""

from __future__ import annotations

import pytest

from vibesec.config import ApiKeyRuleConfig
from vibesec.scanner.api_keys import ApiKeyGuardian, has_use_client_directive, rule_from_config
from vibesec.scanner.base import IssueCategory, Severity


class TestUseClientDirective:
    """Tests for client directive detection."""

    @pytest.mark.parametrize(
        "content",
        [
            "'use client'\nimport x from 'y'\n",
            '"use client";\n',
            "\n// comment\n/* block\n comment */\n`use client`\n",
        ],
    )
    def test_directive_first(self, content):
        assert has_use_client_directive(content) is True

    @pytest.mark.parametrize(
        "content",
        [
            "import x from 'y'\n'use client'\n",
            "// 'use client'\nexport default 1\n",
            "",
        ],
    )
    def test_directive_not_first(self, content):
        assert has_use_client_directive(content) is False


class TestEnvCheck:
    """Tests for exposed service keys in env files."""

    def test_exposed_openai_key(self, tmp_path, write_file, config):
        """Test a prefixed service key is critical and masked."""
        write_file(".env.local", "NEXT_PUBLIC_OPENAI_API_KEY=sk-abcdefghijklmnop\n")

        (issue,) = ApiKeyGuardian().scan(tmp_path, config).issues

        assert issue.id == "apikey-env-openai-.env.local-1"
        assert issue.severity == Severity.CRITICAL
        assert issue.category == IssueCategory.SECRET_LEAK
        assert issue.key == "NEXT_PUBLIC_OPENAI_API_KEY"
        assert "sk-abcdefghijklmnop" not in issue.message
        assert "sk-a****" in issue.message

    def test_server_only_key_is_fine(self, tmp_path, write_file, config):
        """Test unprefixed keys are not reported."""
        write_file(".env", "OPENAI_API_KEY=sk-x\nSERPER_API_KEY=y\n")

        assert ApiKeyGuardian().scan(tmp_path, config).issues == []

    def test_value_mentioning_service_does_not_match(self, tmp_path, write_file, config):
        """Test only the key name is matched, not the value."""
        write_file(".env", "NEXT_PUBLIC_SEARCH_PROVIDER=serper\n")

        assert ApiKeyGuardian().scan(tmp_path, config).issues == []


class TestCodeCheck:
    """Tests for client-side references in source files."""

    def test_use_client_file(self, tmp_path, write_file, config):
        """Test a 'use client' file referencing a service key."""
        write_file(
            "src/lib/search.ts",
            "'use client'\nconst key = process.env.NEXT_PUBLIC_SERPER_API_KEY\n",
        )

        (issue,) = ApiKeyGuardian().scan(tmp_path, config).issues

        assert issue.id == "apikey-code-serper-dev-src/lib/search.ts-2"
        assert issue.severity == Severity.WARNING
        assert issue.category == IssueCategory.SECRET_LEAK

    def test_client_path_without_directive(self, tmp_path, write_file, config):
        """Test files under client paths count as client-side."""
        write_file("src/components/Chat.tsx", "fetch('https://api.openai.com/v1/chat')\n")

        (issue,) = ApiKeyGuardian().scan(tmp_path, config).issues

        assert issue.rule_id == "openai"

    def test_server_routes_are_never_penalized(self, tmp_path, write_file, config):
        """Test API routes inside client globs are excluded."""
        write_file(
            "src/app/api/search/route.ts",
            "const res = await fetch('https://google.serper.dev/search', {\n"
            "  headers: { 'X-API-KEY': process.env.SERPER_API_KEY },\n"
            "})\n",
        )

        assert ApiKeyGuardian().scan(tmp_path, config).issues == []

    def test_non_client_path(self, tmp_path, write_file, config):
        """Test server-side library code outside client paths."""
        write_file("src/server/openai.ts", "const client = new OpenAI()\n")

        assert ApiKeyGuardian().scan(tmp_path, config).issues == []

    def test_one_issue_per_rule_and_line(self, tmp_path, write_file, config):
        """Test several code patterns on one line give one issue."""
        write_file(
            "src/components/Search.tsx",
            "fetch('https://google.serper.dev', { headers: { key: SERPER_API_KEY } })\n",
        )

        issues = ApiKeyGuardian().scan(tmp_path, config).issues

        assert [i.id for i in issues] == ["apikey-code-serper-dev-src/components/Search.tsx-1"]

    def test_custom_rule_from_config(self, tmp_path, write_file, config):
        """Test user-defined rules are applied with default client paths."""
        config.api_key_guardian.rules = [
            ApiKeyRuleConfig(
                id="stripe",
                service="Stripe",
                env_key_patterns=["STRIPE_SECRET"],
                code_patterns=["sk_live_[a-z0-9]+"],
            )
        ]
        write_file("src/app/checkout/page.tsx", "const k = 'sk_live_abc123'\n")
        write_file(".env", "NEXT_PUBLIC_STRIPE_SECRET_KEY=sk_live_abc\n")

        ids = sorted(i.id for i in ApiKeyGuardian().scan(tmp_path, config).issues)

        assert ids == [
            "apikey-code-stripe-src/app/checkout/page.tsx-1",
            "apikey-env-stripe-.env-1",
        ]

    def test_rule_from_config_drops_invalid_patterns(self):
        """Test broken user regexes are skipped."""
        rule = rule_from_config(
            ApiKeyRuleConfig(id="x", service="X", code_patterns=["([", "ok"])
        )

        assert [p.pattern for p in rule.code_patterns] == ["ok"]
        assert rule.client_paths

    def test_disabled_by_config(self, config):
        """Test api_key_guardian.enabled toggles the scanner."""
        config.api_key_guardian.enabled = False

        assert ApiKeyGuardian().is_enabled(config) is False
