"""Tests for configuration loading."""

from __future__ import annotations

import tomllib

import pytest

from vibesec.config import (
    DEFAULT_CONFIG_TEMPLATE,
    DEFAULT_SUMMARY_FILE,
    ConfigNotFoundError,
    RlsScannerConfig,
    VibeSecurityConfig,
    find_config,
    load_config,
    load_config_or_default,
)
from vibesec.scanner.base import Severity


class TestVibeSecurityConfig:
    """Tests for the config dataclasses."""

    def test_defaults(self):
        """Test the hard-coded fallback policy."""
        config = VibeSecurityConfig.default()

        assert config.enabled is True
        assert config.secret_scanner.exposed_prefix == "NEXT_PUBLIC_"
        assert ".env.local" in config.secret_scanner.env_files
        assert config.rls_scanner.scan_dirs == ["src"]
        assert "node_modules" in config.rls_scanner.exclude_dirs
        assert config.reporter.summary_file == DEFAULT_SUMMARY_FILE
        assert config.watcher.debounce_ms == 500
        assert config.api_key_guardian.server_paths[0] == "src/app/api/*"

    def test_default_sensitive_patterns(self):
        """Test the default pattern table and its severities."""
        patterns = {p.pattern: p.severity for p in VibeSecurityConfig.default().secret_scanner.sensitive_patterns}

        assert patterns["SUPABASE_SERVICE_ROLE_KEY"] == Severity.CRITICAL
        assert patterns["SECRET"] == Severity.CRITICAL
        assert patterns["PASSWORD"] == Severity.WARNING

    def test_from_dict_empty(self):
        """Test an empty dict gives the defaults."""
        config = VibeSecurityConfig.from_dict({})

        assert config.rls_scanner.whitelisted_tables == []
        assert len(config.secret_scanner.sensitive_patterns) == len(
            VibeSecurityConfig.default().secret_scanner.sensitive_patterns
        )

    def test_from_dict_sections(self):
        """Test every section is read."""
        config = VibeSecurityConfig.from_dict(
            {
                "enabled": False,
                "secret_scanner": {
                    "env_files": ".env",
                    "sensitive_patterns": [
                        {"pattern": "TOKEN", "severity": "warning", "message": "no tokens"},
                        {"pattern": "KEY", "severity": "bogus"},
                    ],
                },
                "rls_scanner": {"whitelisted_tables": ["countries"], "authority": "http"},
                "sql_scanner": {"enabled": False},
                "api_key_guardian": {
                    "rules": [{"id": "stripe", "service": "Stripe", "code_patterns": ["sk_live_"]}]
                },
                "reporter": {"summary_file": "SECURITY.txt"},
                "watcher": {"debounce_ms": 50, "additional_watch_patterns": ["supabase/*.sql"]},
            }
        )

        assert config.enabled is False
        assert config.secret_scanner.env_files == [".env"]
        assert [p.pattern for p in config.secret_scanner.sensitive_patterns] == ["TOKEN", "KEY"]
        # Unknown severities fall back to warning
        assert config.secret_scanner.sensitive_patterns[1].severity == Severity.WARNING
        assert config.rls_scanner.whitelisted_tables == ["countries"]
        assert config.rls_scanner.authority == "http"
        assert config.sql_scanner.enabled is False
        assert config.api_key_guardian.rules[0].service == "Stripe"
        assert config.reporter.summary_file == "SECURITY.txt"
        assert config.watcher.debounce_ms == 50
        assert config.watcher.additional_watch_patterns == ["supabase/*.sql"]


class TestRlsScannerConfig:
    """Tests for credential resolution."""

    def test_resolved_reads_environment(self, monkeypatch):
        """Test empty credentials fall back to environment variables."""
        monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://abc.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")

        resolved = RlsScannerConfig().resolved()

        assert resolved.supabase_url == "https://abc.supabase.co"
        assert resolved.supabase_service_role_key == "service"
        assert resolved.database_url == ""

    def test_resolved_prefers_config(self, monkeypatch):
        """Test explicit values win over the environment."""
        monkeypatch.setenv("DATABASE_URL", "postgres://env")

        resolved = RlsScannerConfig(database_url="postgres://config").resolved()

        assert resolved.database_url == "postgres://config"


class TestFindConfig:
    """Tests for config discovery."""

    def test_finds_vibesec_toml_upward(self, tmp_path):
        """Test discovery walks up from a nested directory."""
        (tmp_path / "vibesec.toml").write_text("enabled = true\n")
        nested = tmp_path / "src" / "app"
        nested.mkdir(parents=True)

        assert find_config(nested) == (tmp_path / "vibesec.toml").resolve()

    def test_finds_pyproject_table(self, tmp_path):
        """Test pyproject.toml counts only with a [tool.vibesec] table."""
        (tmp_path / "pyproject.toml").write_text("[tool.vibesec]\nenabled = false\n")

        found = find_config(tmp_path)

        assert found is not None
        assert found.name == "pyproject.toml"
        assert load_config(found).enabled is False

    def test_ignores_unrelated_pyproject(self, tmp_path):
        """Test a pyproject without the table is skipped."""
        project = tmp_path / "project"
        project.mkdir()
        (project / "pyproject.toml").write_text("[tool.other]\nx = 1\n")

        found = find_config(project)

        assert found is None or found.parent != project.resolve()


class TestLoadConfig:
    """Tests for load_config and load_config_or_default."""

    def test_load_sets_source_path(self, tmp_path):
        """Test the loaded config remembers where it came from."""
        path = tmp_path / "vibesec.toml"
        path.write_text('[rls_scanner]\nwhitelisted_tables = ["countries"]\n')

        config = load_config(path)

        assert config.source_path == path
        assert config.rls_scanner.whitelisted_tables == ["countries"]

    def test_missing_explicit_path(self, tmp_path):
        """Test an explicit missing path raises."""
        with pytest.raises(ConfigNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml_raises(self, tmp_path):
        """Test syntax errors propagate from load_config."""
        path = tmp_path / "vibesec.toml"
        path.write_text("enabled = = true\n")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_config(path)

    def test_invalid_shape_raises_value_error(self, tmp_path):
        """Test a pattern entry without 'pattern' becomes a ValueError."""
        path = tmp_path / "vibesec.toml"
        path.write_text("[[secret_scanner.sensitive_patterns]]\nseverity = \"critical\"\n")

        with pytest.raises(ValueError):
            load_config(path)

    @pytest.mark.parametrize(
        "content",
        [
            'secret_scanner = "oops"\n',
            "watcher = 5\n",
            "reporter = [1, 2]\n",
            'rls_scanner = true\n',
        ],
    )
    def test_section_of_wrong_type(self, tmp_path, content):
        """Test a section that is not a table falls back to the defaults."""
        path = tmp_path / "vibesec.toml"
        path.write_text(content)

        with pytest.raises(ValueError, match="must be a table"):
            load_config(path)

        config, diagnostic = load_config_or_default(tmp_path)

        assert config == VibeSecurityConfig.default()
        assert "must be a table" in diagnostic

    def test_pyproject_table_of_wrong_type(self, tmp_path):
        """Test [tool] vibesec = 5 in pyproject.toml."""
        path = tmp_path / "pyproject.toml"
        path.write_text("[tool]\nvibesec = 5\n")

        config, diagnostic = load_config_or_default(tmp_path, path)

        assert config == VibeSecurityConfig.default()
        assert "must be a table" in diagnostic

    def test_or_default_on_broken_file(self, tmp_path):
        """Test a broken file yields the default policy and a diagnostic."""
        (tmp_path / "vibesec.toml").write_text("enabled = = true\n")

        config, diagnostic = load_config_or_default(tmp_path)

        assert config == VibeSecurityConfig.default()
        assert diagnostic is not None
        assert "TOML syntax error" in diagnostic

    def test_or_default_without_file(self, tmp_path):
        """Test a missing explicit path yields the defaults."""
        config, diagnostic = load_config_or_default(tmp_path, tmp_path / "missing.toml")

        assert config.enabled is True
        assert "Using the default policy" in diagnostic

    def test_or_default_success(self, tmp_path):
        """Test a valid file has no diagnostic."""
        (tmp_path / "vibesec.toml").write_text("[watcher]\ndebounce_ms = 100\n")

        config, diagnostic = load_config_or_default(tmp_path)

        assert diagnostic is None
        assert config.watcher.debounce_ms == 100

    def test_template_round_trips(self, tmp_path):
        """Test the init template is valid and matches the defaults."""
        path = tmp_path / "vibesec.toml"
        path.write_text(DEFAULT_CONFIG_TEMPLATE)

        config = load_config(path)

        assert config.enabled is True
        assert config.rls_scanner.scan_dirs == ["src", "app", "components"]
        assert config.secret_scanner.sensitive_patterns[0].pattern == "SUPABASE_SERVICE_ROLE_KEY"
