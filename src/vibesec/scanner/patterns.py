"""Built-in detection patterns.

This module contains the regex tables used by the scanners:

- SQL_INJECTION_PATTERNS: query construction that interpolates or
  concatenates values into SQL or filter expressions
- TABLE_ACCESSOR_PATTERN: data-access calls with a literal table name
- API_KEY_RULES: third-party services whose keys must stay on the server
- USE_CLIENT_DIRECTIVE: the client-context directive at the top of a file
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from vibesec.scanner.base import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SqlInjectionPattern:
    """A regex describing an injection-prone query construction.

    Attributes:
        id: Unique identifier for this pattern (e.g., "rpc-template-literal").
        title: Short description of the anti-pattern.
        message: Why it is dangerous and what to do instead.
        pattern: Compiled regex pattern.
        fix: Before/after example.
        severity: Severity level when this pattern matches.
    """

    id: str
    title: str
    message: str
    pattern: re.Pattern[str]
    fix: str
    severity: Severity = Severity.CRITICAL


# Ordered: earlier patterns are reported first for the same line.
SQL_INJECTION_PATTERNS: list[SqlInjectionPattern] = [
    SqlInjectionPattern(
        id="rpc-template-literal",
        title="Template literal interpolated into rpc() arguments",
        message=(
            "Do not build rpc() parameters with template literals (${...}). "
            "Pass the variables directly in the parameter object."
        ),
        pattern=re.compile(
            r"\.rpc\(\s*['\"`]\w+['\"`]\s*,\s*\{[^}]*`[^`]*\$\{[^}]+\}[^`]*`[^}]*\}"
        ),
        fix=(
            "// Wrong:\n"
            "supabase.rpc('search_users', { query: `%${userInput}%` })\n\n"
            "// Right:\n"
            "supabase.rpc('search_users', { query: userInput })"
        ),
    ),
    SqlInjectionPattern(
        id="rpc-string-concat",
        title="String concatenation in rpc() arguments",
        message=(
            "Do not concatenate strings (+) into rpc() parameters. "
            "This leaves the query open to SQL injection."
        ),
        pattern=re.compile(
            r"\.rpc\(\s*['\"`]\w+['\"`]\s*,\s*\{[^}]*:\s*[a-zA-Z_$]\w*\s*\+\s*['\"`]"
        ),
        fix=(
            "// Wrong:\n"
            "supabase.rpc('search', { term: userInput + '%' })\n\n"
            "// Right:\n"
            "supabase.rpc('search', { term: userInput })\n"
            "// inside the SQL function: WHERE name LIKE term || '%'"
        ),
    ),
    SqlInjectionPattern(
        id="raw-sql-template-literal",
        title="Template literal interpolated into raw SQL",
        message=(
            "Never embed variables directly in SQL text. "
            "Use parameterized queries (prepared statements)."
        ),
        pattern=re.compile(
            r"`\s*(?:SELECT|INSERT|UPDATE|DELETE|ALTER|DROP|CREATE|TRUNCATE)\b"
            r"[^`]*\$\{[^}]+\}[^`]*`",
            re.IGNORECASE,
        ),
        fix=(
            "// Wrong:\n"
            "const query = `SELECT * FROM users WHERE id = '${userId}'`\n\n"
            "// Right:\n"
            "supabase.from('users').select('*').eq('id', userId)"
        ),
    ),
    SqlInjectionPattern(
        id="raw-sql-string-concat",
        title="String concatenation into raw SQL",
        message=(
            "Do not build SQL with string concatenation (+). "
            "This is the classic SQL injection vector."
        ),
        pattern=re.compile(
            r"['\"`]\s*(?:SELECT|INSERT|UPDATE|DELETE|ALTER|DROP|CREATE)\b"
            r"[^'\"`]*['\"`]\s*\+\s*[a-zA-Z_$]\w*",
            re.IGNORECASE,
        ),
        fix=(
            "// Wrong:\n"
            "const query = \"SELECT * FROM users WHERE name = '\" + userName + \"'\"\n\n"
            "// Right:\n"
            "supabase.from('users').select('*').eq('name', userName)"
        ),
    ),
    SqlInjectionPattern(
        id="filter-template-literal",
        title="Template literal interpolated into filter()/or()/and()",
        message="Filter expressions built with template literals accept arbitrary operators.",
        pattern=re.compile(r"\.(?:filter|or|and)\(\s*`[^`]*\$\{[^}]+\}[^`]*`\s*\)"),
        fix=(
            "// Wrong:\n"
            "supabase.from('posts').select().or(`author_id.eq.${userId},public.eq.true`)\n\n"
            "// Right:\n"
            "supabase.from('posts').select().eq('author_id', userId).eq('public', true)"
        ),
    ),
    SqlInjectionPattern(
        id="search-template-literal",
        title="Template literal interpolated into a search predicate",
        message=(
            "Do not embed user input in textSearch/ilike/like patterns with "
            "template literals. Sanitize wildcards first."
        ),
        pattern=re.compile(
            r"\.(?:textSearch|ilike|like)\(\s*['\"`]\w+['\"`]\s*,\s*`[^`]*\$\{[^}]+\}[^`]*`\s*\)"
        ),
        fix=(
            "// Wrong:\n"
            "supabase.from('posts').select().ilike('title', `%${searchTerm}%`)\n\n"
            "// Right:\n"
            "const sanitized = searchTerm.replace(/[%_]/g, '')\n"
            "supabase.from('posts').select().ilike('title', `%${sanitized}%`)"
        ),
    ),
]


# supabase.from('posts'), client.from("posts"), db.from(`posts`)
TABLE_ACCESSOR_PATTERN = re.compile(r"\.from\(\s*['\"`]([a-zA-Z_][a-zA-Z0-9_]*)['\"`]\s*\)")

USE_CLIENT_DIRECTIVE = re.compile(r"""^\s*['"`]use client['"`]\s*;?\s*$""")


@dataclass(frozen=True)
class ApiKeyRule:
    """A third-party service whose key must never be used from the client.

    Attributes:
        id: Rule identifier (e.g., "serper-dev").
        service: Display name of the service.
        env_key_patterns: Regexes matched (case-insensitive) against env keys.
        code_patterns: Compiled regexes matched against source lines.
        client_paths: Globs of project paths that run in the browser.
        message: Why this is a problem.
        fix: How to route the call through the server.
    """

    id: str
    service: str
    env_key_patterns: tuple[str, ...]
    code_patterns: tuple[re.Pattern[str], ...]
    client_paths: tuple[str, ...]
    message: str
    fix: str


# App Router pages, components and hooks run in the browser; api/ routes are
# excluded separately through api_key_guardian.server_paths.
DEFAULT_CLIENT_PATHS: tuple[str, ...] = (
    "src/app/*",
    "src/components/*",
    "app/*",
    "components/*",
)

_SERVER_PROXY_FIX = (
    "// Right: proxy the call through an API route\n"
    "// src/app/api/search/route.ts\n"
    "export async function POST(req) {\n"
    "  const { query } = await req.json()\n"
    "  const res = await fetch('https://google.serper.dev/search', {\n"
    "    method: 'POST',\n"
    "    headers: { 'X-API-KEY': process.env.SERPER_API_KEY },\n"
    "    body: JSON.stringify({ q: query }),\n"
    "  })\n"
    "  return Response.json(await res.json())\n"
    "}"
)

API_KEY_RULES: list[ApiKeyRule] = [
    ApiKeyRule(
        id="serper-dev",
        service="Serper.dev",
        env_key_patterns=("SERPER", "SERP_API"),
        code_patterns=(
            re.compile(r"serper\.dev", re.IGNORECASE),
            re.compile(r"SERPER_API_KEY"),
            re.compile(r"SERP_API_KEY"),
            re.compile(r"x-api-key['\"`]\s*:\s*.*serper", re.IGNORECASE),
        ),
        client_paths=DEFAULT_CLIENT_PATHS
        + (
            "src/hooks/*",
            "src/lib/client*",
            "pages/*",
            "src/pages/*",
        ),
        message=(
            "The Serper.dev API key is used on the client. It will be visible "
            "in the browser and can be abused."
        ),
        fix=_SERVER_PROXY_FIX,
    ),
    ApiKeyRule(
        id="openai",
        service="OpenAI",
        env_key_patterns=("OPENAI_API_KEY", "OPENAI_SECRET"),
        code_patterns=(
            re.compile(r"OPENAI_API_KEY"),
            re.compile(r"openai\.com/v1", re.IGNORECASE),
            re.compile(r"new\s+OpenAI\s*\("),
            re.compile(r"sk-[a-zA-Z0-9]{20,}"),
        ),
        client_paths=DEFAULT_CLIENT_PATHS,
        message="The OpenAI API key is used on the client. API costs can grow unchecked.",
        fix="// Right: move OpenAI calls into an API route (e.g. src/app/api/chat/route.ts).",
    ),
    ApiKeyRule(
        id="anthropic",
        service="Anthropic",
        env_key_patterns=("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"),
        code_patterns=(
            re.compile(r"ANTHROPIC_API_KEY"),
            re.compile(r"anthropic\.com", re.IGNORECASE),
            re.compile(r"new\s+Anthropic\s*\("),
            re.compile(r"sk-ant-[a-zA-Z0-9-]{20,}"),
        ),
        client_paths=DEFAULT_CLIENT_PATHS,
        message="The Anthropic API key is used on the client.",
        fix="// Right: call the API from an API route.",
    ),
    ApiKeyRule(
        id="google-ai",
        service="Google AI (Gemini)",
        env_key_patterns=("GOOGLE_API_KEY", "GEMINI_API_KEY"),
        code_patterns=(
            re.compile(r"GOOGLE_API_KEY"),
            re.compile(r"GEMINI_API_KEY"),
            re.compile(r"generativelanguage\.googleapis\.com", re.IGNORECASE),
            re.compile(r"new\s+GoogleGenerativeAI\s*\("),
        ),
        client_paths=DEFAULT_CLIENT_PATHS,
        message="The Google AI API key is used on the client.",
        fix="// Right: call the API from an API route.",
    ),
]


def compile_user_pattern(pattern: str, flags: int = re.IGNORECASE) -> re.Pattern[str] | None:
    """Compile a regex from configuration.

    Returns:
        The compiled pattern, or None if the pattern is not a valid regex.
    """
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        logger.debug("Skipping invalid pattern %r: %s", pattern, e)
        return None


def mask_value(value: str, visible_chars: int = 4) -> str:
    """Mask a value, showing only its first few characters.

    Args:
        value: The value to mask.
        visible_chars: Number of leading characters to keep.

    Returns:
        Masked string like "sk-a****".
    """
    if len(value) <= visible_chars * 2:
        return "*" * len(value)
    return f"{value[:visible_chars]}{'*' * 4}"
