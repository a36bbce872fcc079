"""Tests for the secret scanner."""

from __future__ import annotations

from vibesec.config import SensitivePattern, VibeSecurityConfig
from vibesec.scanner.base import IssueCategory, Severity
from vibesec.scanner.engine import ScanEngine
from vibesec.scanner.secrets import SecretScanner


def _secret_issues(result):
    return [i for i in result.issues if i.category == IssueCategory.SECRET_LEAK]


class TestSecretScanner:
    """Tests for client-exposed secret detection."""

    def test_scanner_properties(self):
        """Test name and description."""
        scanner = SecretScanner()

        assert scanner.name == "secrets"
        assert scanner.description

    def test_service_role_key_is_critical(self, tmp_path, write_file, config):
        """Test a prefixed service role key yields one critical issue."""
        write_file(".gitignore", ".env*\n")
        write_file(".env.local", "NEXT_PUBLIC_SUPABASE_SERVICE_ROLE_KEY=eyJhbGciOi\n")

        result = SecretScanner().scan(tmp_path, config)
        issues = _secret_issues(result)

        assert len(issues) == 1
        issue = issues[0]
        assert issue.severity == Severity.CRITICAL
        assert issue.key == "NEXT_PUBLIC_SUPABASE_SERVICE_ROLE_KEY"
        assert issue.file == ".env.local"
        assert issue.line == 1
        assert issue.id == "secret-NEXT_PUBLIC_SUPABASE_SERVICE_ROLE_KEY-.env.local-1"

    def test_value_is_never_echoed(self, tmp_path, write_file, config):
        """Test the message reports the value length, not the value."""
        write_file(".gitignore", ".env\n")
        write_file(".env", "NEXT_PUBLIC_DB_PASSWORD=hunter2hunter2\n")

        issue = _secret_issues(SecretScanner().scan(tmp_path, config))[0]

        assert "hunter2" not in issue.message
        assert "14 characters" in issue.message
        assert issue.severity == Severity.WARNING

    def test_unprefixed_keys_are_ignored(self, tmp_path, write_file, config):
        """Test server-only keys are fine."""
        write_file(".gitignore", ".env\n")
        write_file(".env", "SUPABASE_SERVICE_ROLE_KEY=x\nDATABASE_URL=postgres://x\n")

        result = SecretScanner().scan(tmp_path, config)

        assert result.issues == []

    def test_one_issue_per_line(self, tmp_path, write_file, config):
        """Test a key matching several patterns is reported once, first pattern wins."""
        write_file(".gitignore", ".env\n")
        # Matches SECRET (critical) and PASSWORD (warning)
        write_file(".env", "NEXT_PUBLIC_SECRET_PASSWORD=x\n")

        issues = _secret_issues(SecretScanner().scan(tmp_path, config))

        assert len(issues) == 1
        assert issues[0].severity == Severity.CRITICAL

    def test_one_issue_per_exposed_key(self, tmp_path, write_file, config):
        """Test every matching line of every env file is reported."""
        write_file(".gitignore", ".env*\n")
        write_file(
            ".env",
            "NEXT_PUBLIC_SUPABASE_URL=https://x.supabase.co\n"
            "NEXT_PUBLIC_STRIPE_SECRET=sk\n"
            "NEXT_PUBLIC_SMTP_HOST=mail\n",
        )
        write_file(".env.production", "NEXT_PUBLIC_PRIVATE_KEY=pk\n")

        issues = _secret_issues(SecretScanner().scan(tmp_path, config))

        assert sorted(i.key for i in issues) == [
            "NEXT_PUBLIC_PRIVATE_KEY",
            "NEXT_PUBLIC_SMTP_HOST",
            "NEXT_PUBLIC_STRIPE_SECRET",
        ]
        assert len({i.id for i in issues}) == 3

    def test_cross_reference_to_server_key(self, tmp_path, write_file, config):
        """Test the message notes the unprefixed definition."""
        write_file(".gitignore", ".env*\n")
        write_file(".env", "STRIPE_SECRET=a\n")
        write_file(".env.local", "NEXT_PUBLIC_STRIPE_SECRET=a\n")

        issue = _secret_issues(SecretScanner().scan(tmp_path, config))[0]

        assert ".env:1" in issue.message
        assert issue.file == ".env.local"

    def test_custom_patterns_and_prefix(self, tmp_path, write_file):
        """Test the pattern table and prefix come from config."""
        write_file(".gitignore", ".env\n")
        write_file(".env", "VITE_TOKEN=x\nVITE_SECRET=y\n")
        config = VibeSecurityConfig.default()
        config.secret_scanner.exposed_prefix = "VITE_"
        config.secret_scanner.sensitive_patterns = [
            SensitivePattern("token", Severity.INFO, "tokens"),
        ]

        issues = _secret_issues(SecretScanner().scan(tmp_path, config))

        assert [(i.key, i.severity) for i in issues] == [("VITE_TOKEN", Severity.INFO)]

    def test_invalid_user_regex_is_skipped(self, tmp_path, write_file):
        """Test a broken pattern does not stop the scan."""
        write_file(".gitignore", ".env\n")
        write_file(".env", "NEXT_PUBLIC_SECRET=x\n")
        config = VibeSecurityConfig.default()
        config.secret_scanner.sensitive_patterns = [
            SensitivePattern("([", Severity.CRITICAL),
            SensitivePattern("SECRET", Severity.WARNING),
        ]

        issues = _secret_issues(SecretScanner().scan(tmp_path, config))

        assert [i.severity for i in issues] == [Severity.WARNING]

    def test_ids_are_stable(self, tmp_path, write_file, config):
        """Test re-scanning unchanged content yields the same ids."""
        write_file(".env", "NEXT_PUBLIC_SECRET=x\nNEXT_PUBLIC_PASSWORD=y\n")
        scanner = SecretScanner()

        first = {i.id for i in scanner.scan(tmp_path, config).issues}
        second = {i.id for i in scanner.scan(tmp_path, config).issues}

        assert first == second


class TestGitignoreCheck:
    """Tests for the .gitignore check."""

    def test_no_env_files_no_issue(self, tmp_path, config):
        """Test nothing is reported for a project without env files."""
        result = SecretScanner().scan(tmp_path, config)

        assert result.issues == []
        assert not result.has_error

    def test_missing_gitignore_is_info(self, tmp_path, write_file, config):
        """Test env files without any .gitignore."""
        write_file(".env", "A=1\n")

        issues = SecretScanner().scan(tmp_path, config).issues

        assert [(i.id, i.severity) for i in issues] == [
            ("secret-gitignore-missing", Severity.INFO)
        ]

    def test_gitignore_without_env_rule_is_warning(self, tmp_path, write_file, config):
        """Test a .gitignore that does not mention .env."""
        write_file(".env", "A=1\n")
        write_file(".gitignore", "node_modules\n")

        issues = SecretScanner().scan(tmp_path, config).issues

        assert [(i.id, i.severity) for i in issues] == [
            ("secret-gitignore-env-missing", Severity.WARNING)
        ]

    def test_gitignore_with_env_rule(self, tmp_path, write_file, config):
        """Test a proper .gitignore produces no issue."""
        write_file(".env", "A=1\n")
        write_file(".gitignore", ".env\n")

        assert SecretScanner().scan(tmp_path, config).issues == []


class TestExposedDatabaseUrl:
    """End-to-end check of a client-exposed connection string."""

    def test_single_critical_issue(self, tmp_path, write_file, config):
        """Test NEXT_PUBLIC_DATABASE_URL gives exactly one critical secret leak."""
        write_file(".gitignore", ".env\n")
        write_file(".env", "NEXT_PUBLIC_DATABASE_URL=postgres://user:pw@db.example.com/app\n")

        issues = ScanEngine().run_full_scan(tmp_path, config)

        (issue,) = [i for i in issues if i.category == IssueCategory.SECRET_LEAK]
        assert issue.severity == Severity.CRITICAL
        assert issue.key == "NEXT_PUBLIC_DATABASE_URL"
        assert issue.id == "secret-NEXT_PUBLIC_DATABASE_URL-.env-1"
        assert "postgres://user:pw" not in issue.message
        assert [i.severity for i in issues] == [Severity.CRITICAL]
