"""Base classes for code tagger plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..models import CodeFile


class TaggerError(RuntimeError):
    """Raised when a tagger is unknown, unavailable or produces unexpected output."""


@dataclass(frozen=True)
class TaggedSymbol:
    """A symbol location reported by a tagger.

    ``symbol`` is a stable identifier shared by every declaration of the same
    logical function, or empty when the tagger cannot provide one.
    """

    tag: str
    symbol: str = ""
    line: int = 0
    optional: bool = False


class CodeTagger(ABC):
    """Contract for taggers that locate functions in source files."""

    name: str = ""

    @abstractmethod
    def tag_code(
        self,
        repo_name: str,
        root: Path,
        code_files: Sequence[CodeFile],
        *,
        compilation_database: Optional[str] = None,
        compiler_arguments: Sequence[str] = (),
    ) -> Dict[CodeFile, List[TaggedSymbol]]:
        """Return the symbols of each supported file, ordered by line.

        Files the tagger does not understand are left out of the result.
        """


__all__ = ["CodeTagger", "TaggedSymbol", "TaggerError"]
