"""ENV file parser used by the secret scanner and the API-key guardian."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass
class EnvVar:
    """Parsed environment variable."""

    name: str
    value: str
    line_number: int


@dataclass
class EnvFile:
    """Parsed .env file.

    ``entries`` keeps every definition in file order; a key may be defined
    more than once.
    """

    entries: list[EnvVar] = field(default_factory=list)


class EnvParser:
    """Parse .env content.

    Handles:
    - Standard KEY=value
    - Shell-style ``export KEY=value``
    - Quoted values: KEY="value" or KEY='value'
    - Comments and blank lines (skipped)
    - Malformed lines (skipped)
    """

    EXPORT_PATTERN = re.compile(r"^export\s+")

    # Pattern to match KEY=value lines
    LINE_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_.\-]*)\s*=\s*(.*)$")

    def parse_string(self, content: str) -> EnvFile:
        """Parse .env content from string.

        Args:
            content: String content of .env file

        Returns:
            EnvFile with parsed variables
        """
        env_file = EnvFile()

        for line_num, line in enumerate(content.splitlines(), start=1):
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            line = self.EXPORT_PATTERN.sub("", line)

            match = self.LINE_PATTERN.match(line)
            if not match:
                continue

            env_file.entries.append(
                EnvVar(
                    name=match.group(1),
                    value=self._unquote(match.group(2).strip()),
                    line_number=line_num,
                )
            )

        return env_file

    def _unquote(self, value: str) -> str:
        """Remove one pair of surrounding double or single quotes."""
        if len(value) >= 2:
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                return value[1:-1]
        return value
