"""Attach ``@llr`` requirement references found above code symbols."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .config import Document
from .logging import get_logger
from .models import CodeFile, CodeSymbol, CodeType, Position, ReqLink, SourceRange
from .taggers.base import TaggedSymbol

# A comment line such as ``// @llr REQ-P-SWL-1, REQ-P-SWL-2`` or ``# \llr REQ-P-SWL-3``.
LLR_REFERENCE_LINE = re.compile(r"^[ \t*/#]*(?:@|\\)llr +(?:REQ-\w+-\w+-\d+[, ]*)+$", re.ASCII)
LLR_REFERENCE = re.compile(r"REQ-\w+-\w+-\d+", re.ASCII)
_BLANK_LINE = re.compile(r"^\s*$")

logger = get_logger("annotations")


def scan_symbols(lines: Sequence[str], symbols: Sequence[CodeSymbol], *, is_test_file: bool = False) -> None:
    """Fill ``links`` (and ``optional`` for test files) of the symbols of one file.

    Symbols are visited by ascending line. For each one the comment block above
    it is read bottom-up until a blank line, the start of the file, or the line
    of the previous symbol. A symbol on the same line as the previous one
    shares its links.
    """
    previous: Optional[CodeSymbol] = None
    for symbol in sorted(symbols, key=lambda item: item.line):
        if is_test_file:
            symbol.optional = True
        if previous is not None and symbol.line == previous.line:
            symbol.links = list(previous.links)
            continue

        lower_bound = previous.line if previous is not None else 0
        links: List[ReqLink] = []
        index = symbol.line - 2
        while index >= lower_bound:
            text = lines[index] if index < len(lines) else ""
            if LLR_REFERENCE_LINE.match(text):
                for match in LLR_REFERENCE.finditer(text):
                    links.append(
                        ReqLink(
                            id=match.group(0),
                            range=SourceRange(
                                start=Position(line=index, character=match.start()),
                                end=Position(line=index, character=match.end()),
                            ),
                        )
                    )
            elif _BLANK_LINE.match(text):
                break
            index -= 1
        symbol.links = links
        previous = symbol


def scan_code_files(
    root: Path,
    tagged: Mapping[CodeFile, Sequence[TaggedSymbol]],
    document: Document,
) -> List[CodeSymbol]:
    """Turn tagger output into linked CodeSymbols owned by ``document``."""
    result: List[CodeSymbol] = []
    for code_file in sorted(tagged, key=lambda item: (item.path, item.type.value)):
        symbols = [
            CodeSymbol(
                file=code_file,
                tag=entry.tag,
                symbol=entry.symbol,
                line=entry.line,
                optional=entry.optional,
                document=document,
            )
            for entry in tagged[code_file]
        ]
        if not symbols:
            continue
        text = (root / code_file.path).read_text(encoding="utf-8", errors="replace")
        lines = [line.rstrip("\r") for line in text.split("\n")]
        scan_symbols(lines, symbols, is_test_file=code_file.type.matches(CodeType.TESTS))
        logger.debug("Scanned %d symbols in %s", len(symbols), code_file)
        result.extend(sorted(symbols, key=lambda item: item.line))
    return result


__all__ = ["LLR_REFERENCE", "LLR_REFERENCE_LINE", "scan_code_files", "scan_symbols"]
