"""Requirement lookups used by listing and reporting tools."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .config import Document
from .models import Graph, ReqVariant, Requirement


class FilterError(ValueError):
    """Raised when filter expressions cannot be compiled."""


@dataclass
class ReqFilter:
    """Regular expressions a requirement must match; unset fields match anything."""

    id: Optional[Pattern[str]] = None
    title: Optional[Pattern[str]] = None
    body: Optional[Pattern[str]] = None
    any_attribute: Optional[Pattern[str]] = None
    attributes: Dict[str, Pattern[str]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return (
            self.id is None
            and self.title is None
            and self.body is None
            and self.any_attribute is None
            and not self.attributes
        )

    def matches(self, req: Requirement) -> bool:
        if self.id is not None and not self.id.search(req.id):
            return False
        if self.title is not None and not self.title.search(req.title):
            return False
        if self.body is not None and not self.body.search(req.body):
            return False
        if self.any_attribute is not None:
            if not any(self.any_attribute.search(value) for value in req.attributes.values()):
                return False
        for name, pattern in self.attributes.items():
            if not pattern.search(req.attributes.get(name, "")):
                return False
        return True


def create_filter(
    id: str = "",
    title: str = "",
    body: str = "",
    attribute_filters: Sequence[str] = (),
) -> ReqFilter:
    """Compile filter expressions.

    ``attribute_filters`` entries are either ``NAME=regex``, matched against
    one attribute, or a bare regex matched against any attribute value. Only
    one bare regex is allowed.
    """
    flt = ReqFilter(id=_compile(id), title=_compile(title), body=_compile(body))
    for entry in attribute_filters:
        if "=" in entry:
            name, _, expression = entry.partition("=")
            flt.attributes[name.strip().upper()] = _compile(expression) or re.compile("")
        else:
            if flt.any_attribute is not None:
                raise FilterError("cannot specify more than one any attribute filter")
            flt.any_attribute = _compile(entry)
    return flt


def filter_requirements(graph: Graph, flt: Optional[ReqFilter] = None) -> List[Requirement]:
    """Return the requirements matching ``flt``, ordered by document path and position."""
    selected = [req for req in graph.requirements.values() if flt is None or flt.matches(req)]
    return sorted(selected, key=lambda req: (req.document_path, req.position))


def next_ids(requirements: Iterable[Requirement], document: Document) -> Tuple[str, Optional[str]]:
    """Return the next free requirement ID and, once assumptions exist, the next assumption ID."""
    greatest = {variant: 0 for variant in ReqVariant}
    for req in requirements:
        greatest[req.variant] = max(greatest[req.variant], req.id_number)

    spec = document.req_spec
    next_req = f"REQ-{spec.prefix}-{spec.level}-{greatest[ReqVariant.REQUIREMENT] + 1}"
    next_asm = None
    if greatest[ReqVariant.ASSUMPTION] > 0:
        next_asm = f"ASM-{spec.prefix}-{spec.level}-{greatest[ReqVariant.ASSUMPTION] + 1}"
    return next_req, next_asm


def _compile(expression: str) -> Optional[Pattern[str]]:
    if not expression:
        return None
    try:
        return re.compile(expression)
    except re.error as exc:
        raise FilterError(f"Invalid filter expression `{expression}`: {exc}") from exc


__all__ = ["FilterError", "ReqFilter", "create_filter", "filter_requirements", "next_ids"]
