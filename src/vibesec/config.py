"""Configuration loading for vibesec.

Configuration lives in ``vibesec.toml`` or in the ``[tool.vibesec]`` table of
``pyproject.toml``:

    enabled = true

    [secret_scanner]
    env_files = [".env", ".env.local"]
    exposed_prefix = "NEXT_PUBLIC_"

    [[secret_scanner.sensitive_patterns]]
    pattern = "SERVICE_ROLE_KEY"
    severity = "critical"
    message = "Service role keys bypass every RLS policy."

    [rls_scanner]
    scan_dirs = ["src"]
    whitelisted_tables = ["countries"]

    [watcher]
    debounce_ms = 500

The config is re-read before every watch-triggered scan, so policy edits
take effect without restarting the process.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vibesec.scanner.base import Severity

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "vibesec.toml"
PYPROJECT_TABLE = "vibesec"
DEFAULT_SUMMARY_FILE = "vibe-summary.txt"


class ConfigNotFoundError(Exception):
    """Configuration file not found."""

    pass


@dataclass(frozen=True)
class SensitivePattern:
    """A key-name pattern that must never be client-exposed."""

    pattern: str
    severity: Severity = Severity.CRITICAL
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SensitivePattern:
        return cls(
            pattern=str(data["pattern"]),
            severity=Severity.parse(data.get("severity", "critical")),
            message=str(data.get("message", "")),
        )


DEFAULT_SENSITIVE_PATTERNS: tuple[SensitivePattern, ...] = (
    SensitivePattern(
        "SUPABASE_SERVICE_ROLE_KEY",
        Severity.CRITICAL,
        "The Supabase service role key must never reach the client. It bypasses every RLS policy.",
    ),
    SensitivePattern(
        "DATABASE_URL",
        Severity.CRITICAL,
        "Database connection strings must not be visible to the client.",
    ),
    SensitivePattern(
        "SECRET",
        Severity.CRITICAL,
        "Keys containing SECRET must not be exposed to the client.",
    ),
    SensitivePattern(
        "PRIVATE_KEY",
        Severity.CRITICAL,
        "Private keys must never be exposed to the client.",
    ),
    SensitivePattern(
        "PASSWORD",
        Severity.WARNING,
        "Password variables must not be visible to the client.",
    ),
    SensitivePattern(
        "SMTP",
        Severity.WARNING,
        "SMTP settings belong on the server.",
    ),
)


@dataclass
class SecretScannerConfig:
    """Secret scanner settings."""

    env_files: list[str] = field(
        default_factory=lambda: [".env", ".env.local", ".env.development", ".env.production"]
    )
    sensitive_patterns: list[SensitivePattern] = field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_PATTERNS)
    )
    exposed_prefix: str = "NEXT_PUBLIC_"


@dataclass
class RlsScannerConfig:
    """RLS scanner settings.

    ``scan_dirs``, ``extensions`` and ``exclude_dirs`` also drive the source
    walk of the SQL-injection scanner and the API-key guardian.
    """

    enabled: bool = True
    scan_dirs: list[str] = field(default_factory=lambda: ["src"])
    extensions: list[str] = field(default_factory=lambda: [".ts", ".tsx", ".js", ".jsx"])
    exclude_dirs: list[str] = field(
        default_factory=lambda: ["node_modules", ".next", "dist", ".git"]
    )
    whitelisted_tables: list[str] = field(default_factory=list)
    ignore_usage_paths: list[str] = field(default_factory=list)
    authority: str = "auto"  # auto | http | postgres
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    database_url: str = ""
    timeout_seconds: float = 10.0

    def resolved(self) -> RlsScannerConfig:
        """Return a copy with empty credentials filled from the environment."""
        return RlsScannerConfig(
            enabled=self.enabled,
            scan_dirs=list(self.scan_dirs),
            extensions=list(self.extensions),
            exclude_dirs=list(self.exclude_dirs),
            whitelisted_tables=list(self.whitelisted_tables),
            ignore_usage_paths=list(self.ignore_usage_paths),
            authority=self.authority,
            supabase_url=self.supabase_url
            or os.environ.get("SUPABASE_URL", "")
            or os.environ.get("NEXT_PUBLIC_SUPABASE_URL", ""),
            supabase_service_role_key=self.supabase_service_role_key
            or os.environ.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            database_url=self.database_url or os.environ.get("DATABASE_URL", ""),
            timeout_seconds=self.timeout_seconds,
        )


@dataclass
class SqlScannerConfig:
    """SQL-injection scanner settings."""

    enabled: bool = True


@dataclass
class ApiKeyRuleConfig:
    """User-defined API-key rule."""

    id: str
    service: str
    env_key_patterns: list[str] = field(default_factory=list)
    code_patterns: list[str] = field(default_factory=list)
    client_paths: list[str] = field(default_factory=list)
    message: str = ""
    fix: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApiKeyRuleConfig:
        return cls(
            id=str(data["id"]),
            service=str(data.get("service", data["id"])),
            env_key_patterns=list(data.get("env_key_patterns", [])),
            code_patterns=list(data.get("code_patterns", [])),
            client_paths=list(data.get("client_paths", [])),
            message=str(data.get("message", "")),
            fix=str(data.get("fix", "")),
        )


@dataclass
class ApiKeyGuardianConfig:
    """API-key guardian settings."""

    enabled: bool = True
    server_paths: list[str] = field(
        default_factory=lambda: ["src/app/api/*", "app/api/*", "pages/api/*", "src/pages/api/*"]
    )
    rules: list[ApiKeyRuleConfig] = field(default_factory=list)


@dataclass
class ReporterConfig:
    """Output settings."""

    terminal: bool = True
    summary_file: str = DEFAULT_SUMMARY_FILE


@dataclass
class WatcherConfig:
    """File watcher settings."""

    debounce_ms: int = 500
    additional_watch_patterns: list[str] = field(default_factory=list)
    poll_interval_ms: int = 250


@dataclass
class VibeSecurityConfig:
    """Complete policy snapshot for one scan."""

    enabled: bool = True
    secret_scanner: SecretScannerConfig = field(default_factory=SecretScannerConfig)
    rls_scanner: RlsScannerConfig = field(default_factory=RlsScannerConfig)
    sql_scanner: SqlScannerConfig = field(default_factory=SqlScannerConfig)
    api_key_guardian: ApiKeyGuardianConfig = field(default_factory=ApiKeyGuardianConfig)
    reporter: ReporterConfig = field(default_factory=ReporterConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    source_path: Path | None = None

    @classmethod
    def default(cls) -> VibeSecurityConfig:
        """Hard-coded fallback policy."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VibeSecurityConfig:
        """Create config from a parsed TOML dictionary.

        Missing sections use defaults; unknown keys are ignored.
        """
        secret_data = _section(data, "secret_scanner")
        rls_data = _section(data, "rls_scanner")
        sql_data = _section(data, "sql_scanner")
        guardian_data = _section(data, "api_key_guardian")
        reporter_data = _section(data, "reporter")
        watcher_data = _section(data, "watcher")

        secret_defaults = SecretScannerConfig()
        if "sensitive_patterns" in secret_data:
            patterns = [
                SensitivePattern.from_dict(item) for item in secret_data["sensitive_patterns"]
            ]
        else:
            patterns = secret_defaults.sensitive_patterns

        secret_config = SecretScannerConfig(
            env_files=_as_list(secret_data.get("env_files", secret_defaults.env_files)),
            sensitive_patterns=patterns,
            exposed_prefix=secret_data.get("exposed_prefix", secret_defaults.exposed_prefix),
        )

        rls_defaults = RlsScannerConfig()
        rls_config = RlsScannerConfig(
            enabled=rls_data.get("enabled", rls_defaults.enabled),
            scan_dirs=_as_list(rls_data.get("scan_dirs", rls_defaults.scan_dirs)),
            extensions=_as_list(rls_data.get("extensions", rls_defaults.extensions)),
            exclude_dirs=_as_list(rls_data.get("exclude_dirs", rls_defaults.exclude_dirs)),
            whitelisted_tables=_as_list(rls_data.get("whitelisted_tables", [])),
            ignore_usage_paths=_as_list(rls_data.get("ignore_usage_paths", [])),
            authority=rls_data.get("authority", rls_defaults.authority),
            supabase_url=rls_data.get("supabase_url", ""),
            supabase_service_role_key=rls_data.get("supabase_service_role_key", ""),
            database_url=rls_data.get("database_url", ""),
            timeout_seconds=float(rls_data.get("timeout_seconds", rls_defaults.timeout_seconds)),
        )

        guardian_defaults = ApiKeyGuardianConfig()
        guardian_config = ApiKeyGuardianConfig(
            enabled=guardian_data.get("enabled", True),
            server_paths=_as_list(
                guardian_data.get("server_paths", guardian_defaults.server_paths)
            ),
            rules=[ApiKeyRuleConfig.from_dict(rule) for rule in guardian_data.get("rules", [])],
        )

        watcher_defaults = WatcherConfig()
        return cls(
            enabled=data.get("enabled", True),
            secret_scanner=secret_config,
            rls_scanner=rls_config,
            sql_scanner=SqlScannerConfig(enabled=sql_data.get("enabled", True)),
            api_key_guardian=guardian_config,
            reporter=ReporterConfig(
                terminal=reporter_data.get("terminal", True),
                summary_file=reporter_data.get("summary_file", DEFAULT_SUMMARY_FILE),
            ),
            watcher=WatcherConfig(
                debounce_ms=int(watcher_data.get("debounce_ms", watcher_defaults.debounce_ms)),
                additional_watch_patterns=_as_list(
                    watcher_data.get("additional_watch_patterns", [])
                ),
                poll_interval_ms=int(
                    watcher_data.get("poll_interval_ms", watcher_defaults.poll_interval_ms)
                ),
            ),
        )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config table, rejecting values that are not tables."""
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a table, got {type(value).__name__}")
    return value


def _as_list(value: Any) -> list[str]:
    """Accept a single string where a list is expected."""
    if isinstance(value, str):
        return [value]
    return list(value)


def find_config(start: Path | None = None) -> Path | None:
    """Find a vibesec config file, searching upward from ``start``.

    Looks for ``vibesec.toml`` first, then a ``pyproject.toml`` with a
    ``[tool.vibesec]`` table.

    Args:
        start: Directory to start from (defaults to the current directory).

    Returns:
        Path to the config file, or None if not found.
    """
    current = (start or Path.cwd()).resolve()

    for directory in [current, *current.parents]:
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

        pyproject = directory / "pyproject.toml"
        if pyproject.is_file():
            try:
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError):
                continue
            tool = data.get("tool")
            if isinstance(tool, dict) and PYPROJECT_TABLE in tool:
                return pyproject

    return None


def load_config(path: Path | str | None = None) -> VibeSecurityConfig:
    """Load configuration from a TOML file.

    Args:
        path: Explicit config path. Auto-discovered when None.

    Returns:
        Parsed configuration (defaults when nothing is found by discovery).

    Raises:
        ConfigNotFoundError: If an explicit path does not exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        ValueError: If a value has the wrong shape.
    """
    if path is None:
        path = find_config()
        if path is None:
            return VibeSecurityConfig.default()

    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    if path.name == "pyproject.toml":
        tool = data.get("tool", {})
        data = tool.get(PYPROJECT_TABLE, {}) if isinstance(tool, dict) else None
        if not isinstance(data, dict):
            raise ValueError(f"[tool.{PYPROJECT_TABLE}] in {path} must be a table")

    try:
        config = VibeSecurityConfig.from_dict(data)
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Invalid configuration in {path}: {e}") from e

    config.source_path = path
    logger.debug("Loaded configuration from %s", path)
    return config


def load_config_or_default(
    project_root: Path,
    path: Path | None = None,
) -> tuple[VibeSecurityConfig, str | None]:
    """Load configuration, falling back to the defaults on any failure.

    Args:
        project_root: Project root used for discovery when ``path`` is None.
        path: Explicit config path.

    Returns:
        Tuple of (config, diagnostic). ``diagnostic`` is None on success and a
        human-readable reason when the defaults were used.
    """
    if path is None:
        path = find_config(project_root)
        if path is None:
            return VibeSecurityConfig.default(), (
                f"No {CONFIG_FILENAME} found, using the default policy."
            )

    try:
        return load_config(path), None
    except ConfigNotFoundError as e:
        return VibeSecurityConfig.default(), f"{e}. Using the default policy."
    except tomllib.TOMLDecodeError as e:
        return VibeSecurityConfig.default(), (
            f"TOML syntax error in {path}: {e}. Using the default policy."
        )
    except (OSError, ValueError) as e:
        return VibeSecurityConfig.default(), (
            f"Could not load {path}: {e}. Using the default policy."
        )


DEFAULT_CONFIG_TEMPLATE = '''# vibesec configuration
enabled = true

[secret_scanner]
env_files = [".env", ".env.local", ".env.development", ".env.production"]
exposed_prefix = "NEXT_PUBLIC_"

[[secret_scanner.sensitive_patterns]]
pattern = "SUPABASE_SERVICE_ROLE_KEY"
severity = "critical"
message = "The service role key must never reach the client."

[[secret_scanner.sensitive_patterns]]
pattern = "DATABASE_URL"
severity = "critical"
message = "Database URLs must not be exposed."

[[secret_scanner.sensitive_patterns]]
pattern = "SECRET"
severity = "critical"
message = "Secrets must not be exposed."

[[secret_scanner.sensitive_patterns]]
pattern = "PRIVATE_KEY"
severity = "critical"
message = "Private keys must not be exposed."

[rls_scanner]
enabled = true
scan_dirs = ["src", "app", "components"]
extensions = [".ts", ".tsx", ".js", ".jsx"]
exclude_dirs = ["node_modules", ".next", "dist", ".git"]
whitelisted_tables = []
# auto | http | postgres. Credentials fall back to SUPABASE_URL,
# SUPABASE_SERVICE_ROLE_KEY and DATABASE_URL from the environment.
authority = "auto"
timeout_seconds = 10

[sql_scanner]
enabled = true

[api_key_guardian]
enabled = true

[reporter]
terminal = true
summary_file = "vibe-summary.txt"

[watcher]
debounce_ms = 500
additional_watch_patterns = []
'''
