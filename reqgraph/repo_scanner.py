"""File discovery for the implementation and test paths of a document."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterator, List, Optional, Pattern, Sequence

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}


class RepoScanner:
    """Walks repository paths and returns files matching a query."""

    def find_files(
        self,
        root: Path | str,
        paths: Sequence[str],
        matching_pattern: Optional[Pattern[str] | str] = None,
        ignored_patterns: Sequence[Pattern[str] | str] = (),
    ) -> List[str]:
        """Return sorted repo-relative POSIX paths under each of ``paths``.

        Relative paths that match any ignored pattern are dropped, and when a
        matching pattern is given only files whose relative path matches it
        (search semantics) are kept.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        matcher = _compile(matching_pattern) if matching_pattern is not None else None
        ignored = [_compile(pattern) for pattern in ignored_patterns]

        found: List[str] = []
        for relative in paths:
            start = root_path / relative
            if not start.exists():
                raise FileNotFoundError(f"Path `{relative}` not found in repository {root_path}")
            for path in _iter_files(start):
                rel_path = path.relative_to(root_path).as_posix()
                if any(pattern.search(rel_path) for pattern in ignored):
                    continue
                if matcher is not None and not matcher.search(rel_path):
                    continue
                found.append(rel_path)
        return sorted(set(found))


def _compile(pattern: Pattern[str] | str) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def _iter_files(start: Path) -> Iterator[Path]:
    if start.is_file():
        yield start
        return
    for dirpath, dirnames, filenames in os.walk(start):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            yield current_dir / filename


__all__ = ["RepoScanner"]
