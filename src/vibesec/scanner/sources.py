"""File discovery helpers shared by the scanners."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from pathlib import Path


def relative_path(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` with forward slashes."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def matches_any(rel_path: str, globs: list[str] | tuple[str, ...]) -> bool:
    """Check a project-relative path against shell-style globs.

    ``*`` also matches across directory separators, so ``src/app/*`` covers
    every file below ``src/app``.
    """
    return any(fnmatch.fnmatchcase(rel_path, pattern) for pattern in globs)


def read_text(path: Path) -> str | None:
    """Read a UTF-8 text file.

    Returns:
        The file content, or None if the file cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def iter_source_files(
    root: Path,
    scan_dirs: list[str],
    extensions: list[str],
    exclude_dirs: list[str],
) -> Iterator[Path]:
    """Yield source files below each scan directory.

    Files are yielded in a stable (sorted) order. Directories whose name is
    listed in ``exclude_dirs`` are pruned at any depth.

    Args:
        root: Project root.
        scan_dirs: Directories relative to the root; missing ones are skipped.
        extensions: File suffixes to include (e.g. ".ts").
        exclude_dirs: Directory names to skip.
    """
    excluded = set(exclude_dirs)
    suffixes = tuple(extensions)
    seen: set[Path] = set()

    for scan_dir in scan_dirs:
        base = root / scan_dir
        if not base.is_dir():
            continue

        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if d not in excluded)
            for filename in sorted(filenames):
                if not filename.endswith(suffixes):
                    continue
                path = Path(dirpath) / filename
                if path in seen:
                    continue
                seen.add(path)
                yield path


def find_env_files(root: Path, env_globs: list[str]) -> list[Path]:
    """Resolve env-file globs relative to the project root.

    Returns:
        Unique, sorted list of existing files (dotfiles included).
    """
    found: set[Path] = set()
    for pattern in env_globs:
        try:
            matches = list(root.glob(pattern))
        except (ValueError, OSError):
            continue
        found.update(path for path in matches if path.is_file())
    return sorted(found)
