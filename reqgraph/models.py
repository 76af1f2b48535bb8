"""Core data models of the requirements graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple

from .config import Config, Document
from .diagnostics import Issue, IssueSeverity, count_by_severity


class ReqVariant(str, Enum):
    REQUIREMENT = "REQ"
    ASSUMPTION = "ASM"


class CodeType(str, Enum):
    IMPLEMENTATION = "Implementation"
    TESTS = "Tests"
    ANY = "Any"

    def matches(self, requested: "CodeType") -> bool:
        return requested is CodeType.ANY or self is requested


class Attributes(MutableMapping[str, str]):
    """Attribute bag whose keys are upper-cased on every access."""

    def __init__(self, data: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = {}
        if data:
            self.update(data)

    def __getitem__(self, key: str) -> str:
        return self._data[key.upper()]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key.upper()] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key.upper()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.upper() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Attributes):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == {str(key).upper(): value for key, value in other.items()}
        return NotImplemented

    def __repr__(self) -> str:
        return f"Attributes({self._data!r})"

    def to_dict(self) -> Dict[str, str]:
        return dict(self._data)


@dataclass
class Requirement:
    """A requirement or assumption parsed from a certification document.

    ``parents`` and ``children`` hold requirement IDs (keys of
    ``Graph.requirements``) and are only populated by ``Graph.link``.
    """

    id: str
    variant: ReqVariant
    id_number: int
    title: str = ""
    body: str = ""
    parent_ids: List[str] = field(default_factory=list)
    attributes: Attributes = field(default_factory=Attributes)
    position: int = 0
    document: Optional[Document] = field(default=None, compare=False, repr=False)
    repo_name: str = ""
    parents: List[str] = field(default_factory=list, compare=False)
    children: List[str] = field(default_factory=list, compare=False)
    tags: List["CodeSymbol"] = field(default_factory=list, compare=False, repr=False)

    @property
    def is_deleted(self) -> bool:
        return self.title.startswith("DELETED")

    @property
    def document_path(self) -> str:
        return self.document.path if self.document is not None else ""


@dataclass
class FlowTag:
    """A data (``DF-``) or control (``CF-``) flow annotation."""

    id: str
    caller: str = ""
    callee: str = ""
    direction: str = ""
    description: str = ""
    deleted: bool = False
    position: int = 0
    document: Optional[Document] = field(default=None, compare=False, repr=False)
    repo_name: str = ""
    reqs: List[str] = field(default_factory=list, compare=False)

    @property
    def kind(self) -> str:
        return self.id.split("-", 1)[0]

    @property
    def document_path(self) -> str:
        return self.document.path if self.document is not None else ""


@dataclass(frozen=True)
class CodeFile:
    repo_name: str
    path: str
    type: CodeType

    def __str__(self) -> str:
        return f"{self.repo_name}: {self.path}"


@dataclass(frozen=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True)
class SourceRange:
    start: Position
    end: Position


@dataclass(frozen=True)
class ReqLink:
    """One requirement ID found in an ``@llr`` comment, with its 0-based span."""

    id: str
    range: SourceRange


@dataclass
class CodeSymbol:
    """A function (or other construct) reported by a code tagger."""

    file: CodeFile
    tag: str
    symbol: str = ""
    line: int = 0
    links: List[ReqLink] = field(default_factory=list)
    optional: bool = False
    document: Optional[Document] = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> Tuple[CodeFile, str, int]:
        return (self.file, self.tag, self.line)

    @property
    def link_ids(self) -> List[str]:
        return [link.id for link in self.links]

    @property
    def document_path(self) -> str:
        return self.document.path if self.document is not None else ""


@dataclass
class Graph:
    """Requirements, flow tags and code symbols of every configured repository."""

    config: Optional[Config] = None
    requirements: Dict[str, Requirement] = field(default_factory=dict)
    code_symbols: Dict[str, List[CodeSymbol]] = field(default_factory=dict)
    flow_tags: Dict[str, FlowTag] = field(default_factory=dict)
    issues: List[Issue] = field(default_factory=list)

    def add_code_symbols(self, symbols: Iterable[CodeSymbol]) -> int:
        """Append symbols per repository, skipping any already present by identity."""
        added = 0
        known: Dict[str, set] = {}
        for symbol in symbols:
            repo = symbol.file.repo_name
            bucket = self.code_symbols.setdefault(repo, [])
            keys = known.setdefault(repo, {existing.key for existing in bucket})
            if symbol.key in keys:
                continue
            bucket.append(symbol)
            keys.add(symbol.key)
            added += 1
        return added

    def iter_code_symbols(self) -> Iterator[CodeSymbol]:
        for symbols in self.code_symbols.values():
            yield from symbols

    def link(self) -> None:
        """Populate parent/child back-references from ``parent_ids``, ordered by position."""
        for req in self.requirements.values():
            req.parents = []
            req.children = []
        for req in self.requirements.values():
            for parent_id in req.parent_ids:
                parent = self.requirements.get(parent_id)
                if parent is None:
                    continue
                parent.children.append(req.id)
                req.parents.append(parent_id)
        for req in self.requirements.values():
            req.parents.sort(key=self._position_of)
            req.children.sort(key=self._position_of)

    def parents_of(self, req: Requirement) -> List[Requirement]:
        return [self.requirements[req_id] for req_id in req.parents]

    def children_of(self, req: Requirement) -> List[Requirement]:
        return [self.requirements[req_id] for req_id in req.children]

    def top_level_requirements(self) -> List[Requirement]:
        """Requirements of documents without link rules that declare no parents."""
        top = [
            req
            for req in self.requirements.values()
            if req.document is not None and not req.document.link_specs and not req.parent_ids
        ]
        return sorted(top, key=lambda req: req.position)

    def count_by_severity(self) -> Dict[IssueSeverity, int]:
        return count_by_severity(self.issues)

    def _position_of(self, req_id: str) -> int:
        return self.requirements[req_id].position


__all__ = [
    "Attributes",
    "CodeFile",
    "CodeSymbol",
    "CodeType",
    "FlowTag",
    "Graph",
    "Position",
    "ReqLink",
    "ReqVariant",
    "Requirement",
    "SourceRange",
]
