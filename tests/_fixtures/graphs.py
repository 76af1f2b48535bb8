"""Helpers for building in-memory graphs in tests."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from reqgraph.config import Document
from reqgraph.models import (
    Attributes,
    CodeFile,
    CodeSymbol,
    CodeType,
    Graph,
    Position,
    ReqLink,
    ReqVariant,
    Requirement,
    SourceRange,
)


def requirement(
    document: Document,
    req_id: str,
    *,
    title: str = "Title",
    body: str = "The system shall work.",
    attributes: Optional[Mapping[str, str]] = None,
    position: int = 1,
    repo_name: str = "flight",
    **kwargs: Any,
) -> Requirement:
    """Build a requirement whose variant and number are derived from ``req_id``."""
    attrs = Attributes(attributes or {})
    parents = attrs.get("PARENTS", "")
    return Requirement(
        id=req_id,
        variant=ReqVariant(req_id.split("-", 1)[0]),
        id_number=int(req_id.rsplit("-", 1)[1]),
        title=title,
        body=body,
        parent_ids=[item.strip() for item in parents.split(",") if item.strip()],
        attributes=attrs,
        position=position,
        document=document,
        repo_name=repo_name,
        **kwargs,
    )


def add_requirements(graph: Graph, *requirements: Requirement) -> Graph:
    for req in requirements:
        graph.requirements[req.id] = req
    return graph


def code_symbol(
    document: Document,
    path: str,
    tag: str,
    line: int,
    *links: str,
    code_type: CodeType = CodeType.IMPLEMENTATION,
    symbol: str = "",
    optional: bool = False,
) -> CodeSymbol:
    """Build a code symbol whose ``@llr`` links all sit on the line above it."""
    refs = [
        ReqLink(link, SourceRange(Position(line - 2, 8), Position(line - 2, 8 + len(link))))
        for link in links
    ]
    return CodeSymbol(
        file=CodeFile("flight", path, code_type),
        tag=tag,
        symbol=symbol,
        line=line,
        links=refs,
        optional=optional,
        document=document,
    )


__all__ = ["add_requirements", "code_symbol", "requirement"]
