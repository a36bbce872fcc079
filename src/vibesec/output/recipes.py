"""Remediation SQL for tables lacking row-level security."""

from __future__ import annotations

from vibesec.scanner.base import SecurityIssue

# RLS rule ids that call for a remediation recipe
UNPROTECTED_RULES = ("rls-disabled", "rls-no-policy", "rls-no-auth")


def generate_rls_recipe(table: str) -> str:
    """Build the standard per-user RLS setup for one table.

    Assumes the table has a ``user_id`` column holding the owner's auth id.
    """
    return f"""\
-- ============================================================
-- RLS recipe: "{table}"
-- Run this block in the Supabase SQL editor.
-- ============================================================

-- 1) Enable row-level security
ALTER TABLE public.{table} ENABLE ROW LEVEL SECURITY;

-- 2) Read: users see only their own rows
CREATE POLICY "{table}_select_own"
  ON public.{table}
  FOR SELECT
  USING (auth.uid() = user_id);

-- Alternative for public data:
-- CREATE POLICY "{table}_select_public"
--   ON public.{table}
--   FOR SELECT
--   USING (true);

-- 3) Insert: users insert rows only in their own name
CREATE POLICY "{table}_insert_own"
  ON public.{table}
  FOR INSERT
  WITH CHECK (auth.uid() = user_id);

-- 4) Update: users update only their own rows
CREATE POLICY "{table}_update_own"
  ON public.{table}
  FOR UPDATE
  USING (auth.uid() = user_id)
  WITH CHECK (auth.uid() = user_id);

-- 5) Delete: users delete only their own rows
CREATE POLICY "{table}_delete_own"
  ON public.{table}
  FOR DELETE
  USING (auth.uid() = user_id);

-- Notes:
-- - Replace "user_id" if the owner column has another name.
-- - The service role key bypasses these policies."""


def generate_bulk_rls_recipes(tables: list[str]) -> str:
    """Concatenate recipes for several tables."""
    if not tables:
        return ""
    header = (
        "-- ============================================================\n"
        f"-- RLS recipes for {len(tables)} table(s): {', '.join(tables)}\n"
        "-- ============================================================"
    )
    return "\n\n".join([header, *(generate_rls_recipe(table) for table in tables)])


def tables_needing_recipes(issues: list[SecurityIssue]) -> list[str]:
    """Tables with an RLS finding that calls for remediation, in issue order."""
    tables: list[str] = []
    for issue in issues:
        if issue.table and issue.rule_id in UNPROTECTED_RULES and issue.table not in tables:
            tables.append(issue.table)
    return tables
