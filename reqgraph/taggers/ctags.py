"""Tagger backed by Universal Ctags."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..models import CodeFile
from .base import CodeTagger, TaggedSymbol, TaggerError
from .pipes import CommandError, run_with_input

CTAGS_ENV_VAR = "REQGRAPH_CTAGS"

# Run ``ctags --list-languages`` for the available language names.
SOURCE_EXTENSIONS: Dict[str, tuple[str, ...]] = {
    "C": (".c", ".h"),
    "C++": (".cc", ".hh"),
    "Go": (".go",),
}

_INSTALL_HINT = (
    "Make sure to install Universal Ctags (not Exuberant Ctags): "
    "https://github.com/universal-ctags/ctags#the-latest-build-and-package"
)

LineRunner = Callable[[Sequence[str], Iterable[str]], Iterable[str]]

logger = get_logger("taggers.ctags")


class CtagsTagger(CodeTagger):
    """Finds functions by running ``ctags`` over the code files.

    Ctags has no notion of a symbol shared between declarations, so every
    reported symbol has an empty ``symbol``.
    """

    name = "ctags"

    def __init__(self, runner: LineRunner | None = None, executable: str | None = None) -> None:
        self._runner = runner or run_with_input
        self._executable = executable

    @property
    def executable(self) -> str:
        if self._executable:
            return self._executable
        return os.environ.get(CTAGS_ENV_VAR, "ctags")

    def tag_code(
        self,
        repo_name: str,
        root: Path,
        code_files: Sequence[CodeFile],
        *,
        compilation_database: Optional[str] = None,
        compiler_arguments: Sequence[str] = (),
    ) -> Dict[CodeFile, List[TaggedSymbol]]:
        if not code_files:
            return {}
        self._check_available()

        root_path = Path(root).resolve()
        files_by_path = {code_file.path: code_file for code_file in code_files}
        args = [
            self.executable,
            "--languages=" + ",".join(SOURCE_EXTENSIONS),
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
        paths = (str(root_path / code_file.path) for code_file in code_files)

        result: Dict[CodeFile, List[TaggedSymbol]] = {}
        try:
            for line in self._runner(args, paths):
                parsed = _parse_tag_line(line, root_path, files_by_path)
                if parsed is None:
                    continue
                code_file, symbol = parsed
                result.setdefault(code_file, []).append(symbol)
        except CommandError as exc:
            raise TaggerError(f"failed to run ctags on the code of repository `{repo_name}`: {exc}") from exc

        for symbols in result.values():
            symbols.sort(key=lambda item: item.line)
        logger.debug("ctags tagged %d files in %s", len(result), repo_name)
        return result

    def _check_available(self) -> None:
        try:
            output = "\n".join(self._runner([self.executable, "--version"], ()))
        except CommandError as exc:
            raise TaggerError(f"universal-ctags not available. {_INSTALL_HINT}") from exc
        if "Universal Ctags" not in output:
            raise TaggerError(f"`{self.executable}` is not universal-ctags. {_INSTALL_HINT}")


def is_source_file(path: str) -> bool:
    suffix = os.path.splitext(path)[1].lower()
    return any(suffix in extensions for extensions in SOURCE_EXTENSIONS.values())


def _parse_tag_line(
    line: str, root: Path, files_by_path: Mapping[str, CodeFile]
) -> Optional[tuple[CodeFile, TaggedSymbol]]:
    parts = line.split("\t")
    if len(parts) < 4:
        # Header and metadata lines of the tags output.
        return None
    tag, path = parts[0], parts[1]
    if tag.startswith("__anon") or not is_source_file(path):
        return None
    if not parts[3].startswith("line:"):
        raise TaggerError(f"line number unknown prefix: {parts}")
    try:
        line_number = int(parts[3][len("line:"):])
    except ValueError as exc:
        raise TaggerError(f"failed to parse line number: {parts}") from exc

    relative = Path(os.path.relpath(path, root)).as_posix()
    code_file = files_by_path.get(relative)
    if code_file is None:
        return None
    return code_file, TaggedSymbol(tag=tag, line=line_number)


__all__ = ["CTAGS_ENV_VAR", "CtagsTagger", "SOURCE_EXTENSIONS", "is_source_file"]
