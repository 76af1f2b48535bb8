"""Tests for the ctags tagger."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Sequence

import pytest

from reqgraph.models import CodeFile, CodeType
from reqgraph.taggers import CtagsTagger, TaggedSymbol, TaggerError
from reqgraph.taggers.ctags import CTAGS_ENV_VAR, is_source_file
from reqgraph.taggers.pipes import CommandError


class _FakeRunner:
    def __init__(self, version: str = "Universal Ctags 6.1.0", output: Sequence[str] = ()) -> None:
        self.version = version
        self.output = list(output)
        self.calls: List[List[str]] = []
        self.inputs: List[List[str]] = []

    def __call__(self, args: Sequence[str], input_lines: Iterable[str]) -> Iterable[str]:
        self.calls.append(list(args))
        self.inputs.append(list(input_lines))
        if "--version" in args:
            return [self.version]
        return list(self.output)


def _files() -> List[CodeFile]:
    return [
        CodeFile("flight", "src/a.c", CodeType.IMPLEMENTATION),
        CodeFile("flight", "test/test_a.c", CodeType.TESTS),
    ]


def test_ctags_tagger_parses_tag_lines(tmp_path: Path) -> None:
    root = tmp_path.resolve()
    runner = _FakeRunner(
        output=[
            "!_TAG_FILE_FORMAT\t2\t/extended format/",
            f"b\t{root}/src/a.c\t/^void b(void) {{$/;\"\tline:12",
            f"a\t{root}/src/a.c\t/^void a(void) {{$/;\"\tline:3",
            f"__anon1\t{root}/src/a.c\t/^struct {{$/;\"\tline:20",
            f"test_a\t{root}/test/test_a.c\t/^void test_a(void) {{$/;\"\tline:5",
            f"other\t{root}/src/other.c\t/^void other(void) {{$/;\"\tline:1",
        ]
    )
    tagger = CtagsTagger(runner=runner, executable="my-ctags")
    impl, tests = _files()

    result = tagger.tag_code("flight", tmp_path, [impl, tests])

    assert result == {
        impl: [TaggedSymbol(tag="a", line=3), TaggedSymbol(tag="b", line=12)],
        tests: [TaggedSymbol(tag="test_a", line=5)],
    }
    assert runner.calls[0] == ["my-ctags", "--version"]
    assert runner.calls[1] == [
        "my-ctags",
        "--languages=C,C++,Go",
        "--kinds-C=f",
        "--kinds-C++=f",
        "--kinds-Go=f",
        "--fields=n",
        "--recurse",
        "-f",
        "-",
        "-L",
        "-",
    ]
    assert runner.inputs[1] == [str(root / "src/a.c"), str(root / "test/test_a.c")]


def test_ctags_tagger_skips_empty_input() -> None:
    runner = _FakeRunner()

    assert CtagsTagger(runner=runner).tag_code("flight", Path("."), []) == {}
    assert runner.calls == []


def test_ctags_tagger_rejects_other_ctags(tmp_path: Path) -> None:
    tagger = CtagsTagger(runner=_FakeRunner(version="Exuberant Ctags 5.8"))

    with pytest.raises(TaggerError, match="not universal-ctags"):
        tagger.tag_code("flight", tmp_path, _files())


def test_ctags_tagger_reports_unknown_line_field(tmp_path: Path) -> None:
    root = tmp_path.resolve()
    runner = _FakeRunner(output=[f"a\t{root}/src/a.c\t/^void a(void)$/;\"\tkind:f"])

    with pytest.raises(TaggerError, match="line number unknown prefix"):
        CtagsTagger(runner=runner).tag_code("flight", tmp_path, _files())


def test_ctags_tagger_wraps_command_failures(tmp_path: Path) -> None:
    def failing_runner(args: Sequence[str], input_lines: Iterable[str]) -> Iterable[str]:
        if "--version" in args:
            return ["Universal Ctags 6.1.0"]
        raise CommandError("command failed with exit status 1")

    with pytest.raises(TaggerError, match="failed to run ctags on the code of repository `flight`"):
        CtagsTagger(runner=failing_runner).tag_code("flight", tmp_path, _files())


def test_ctags_executable_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CTAGS_ENV_VAR, "/opt/ctags/bin/ctags")

    assert CtagsTagger().executable == "/opt/ctags/bin/ctags"
    assert CtagsTagger(executable="ctags-universal").executable == "ctags-universal"


def test_is_source_file() -> None:
    assert is_source_file("src/a.C")
    assert is_source_file("pkg/main.go")
    assert not is_source_file("src/a.py")
