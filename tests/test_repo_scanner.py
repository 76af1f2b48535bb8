"""Tests for reqgraph.repo_scanner."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from reqgraph.repo_scanner import RepoScanner


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_find_files_filters_and_sorts(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write(repo_root / "src" / "b.c", "")
    _write(repo_root / "src" / "a.c", "")
    _write(repo_root / "src" / "a.h", "")
    _write(repo_root / "src" / "README.md", "")
    _write(repo_root / "src" / "generated" / "gen.c", "")
    _write(repo_root / "src" / ".git" / "hook.c", "")
    _write(repo_root / "lib" / "util.c", "")

    files = RepoScanner().find_files(
        repo_root,
        ["src", "lib/util.c", "src"],
        matching_pattern=r"\.(c|h)$",
        ignored_patterns=[re.compile("generated/")],
    )

    assert files == ["lib/util.c", "src/a.c", "src/a.h", "src/b.c"]


def test_find_files_without_pattern_returns_everything(tmp_path: Path) -> None:
    _write(tmp_path / "test" / "test_a.py", "")
    _write(tmp_path / "test" / "data" / "input.txt", "")

    assert RepoScanner().find_files(tmp_path, ["test"]) == ["test/data/input.txt", "test/test_a.py"]


def test_find_files_reports_missing_paths(tmp_path: Path) -> None:
    scanner = RepoScanner()

    with pytest.raises(FileNotFoundError):
        scanner.find_files(tmp_path / "absent", ["src"])
    with pytest.raises(FileNotFoundError):
        scanner.find_files(tmp_path, ["src"])

    _write(tmp_path / "file.txt", "")
    with pytest.raises(NotADirectoryError):
        scanner.find_files(tmp_path / "file.txt", ["src"])
