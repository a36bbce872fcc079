"""Tests for the .env parser."""

from __future__ import annotations

import pytest

from vibesec.core.parser import EnvParser


class TestEnvParser:
    """Tests for EnvParser.parse_string."""

    def test_basic_entries(self):
        """Test KEY=value lines keep their line numbers."""
        env = EnvParser().parse_string("A=1\n\nB=two\n")

        assert [(v.name, v.value, v.line_number) for v in env.entries] == [
            ("A", "1", 1),
            ("B", "two", 3),
        ]

    def test_comments_and_blank_lines_skipped(self):
        """Test comments are never parsed as variables."""
        env = EnvParser().parse_string("# NEXT_PUBLIC_SECRET=x\n\n   \nA=1\n")

        assert [(v.name, v.line_number) for v in env.entries] == [("A", 4)]

    def test_export_prefix_stripped(self):
        """Test shell-style export lines."""
        env = EnvParser().parse_string("export NEXT_PUBLIC_KEY=abc\n")

        assert env.entries[0].name == "NEXT_PUBLIC_KEY"
        assert env.entries[0].value == "abc"

    @pytest.mark.parametrize(
        "line,expected",
        [
            ('A="quoted value"', "quoted value"),
            ("A='single'", "single"),
            ('A="unbalanced', '"unbalanced'),
            ("A=", ""),
        ],
    )
    def test_quotes(self, line, expected):
        """Test one pair of surrounding quotes is removed."""
        env = EnvParser().parse_string(line)

        assert env.entries[0].value == expected

    def test_malformed_lines_skipped(self):
        """Test lines without '=' or with an invalid key are ignored."""
        env = EnvParser().parse_string("just some text\n1BAD=x\nGOOD=y\n")

        assert [v.name for v in env.entries] == ["GOOD"]

    def test_duplicate_keys(self):
        """Test every definition is kept in file order."""
        env = EnvParser().parse_string("A=1\nA=2\n")

        assert [(v.value, v.line_number) for v in env.entries] == [("1", 1), ("2", 2)]
