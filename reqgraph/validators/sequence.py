"""Per-document ID sequencing checks run while requirements are ingested."""

from __future__ import annotations

from typing import Dict, List, Sequence, Set

from ..config import Document
from ..diagnostics import IssueReporter, IssueType
from ..models import Graph, ReqVariant, Requirement


def check_document_sequence(
    requirements: Sequence[Requirement],
    document: Document,
    graph: Graph,
    reporter: IssueReporter,
) -> List[Requirement]:
    """Report ID sequencing problems and return the requirements that may enter the graph.

    Requirements are visited by ascending number, separately per variant. The
    number expected next is one more than the previous number seen, so a single
    gap is reported once rather than for every following requirement.
    """
    expected: Dict[ReqVariant, int] = {variant: 1 for variant in ReqVariant}
    seen: Dict[ReqVariant, Set[int]] = {variant: set() for variant in ReqVariant}
    accepted: List[Requirement] = []

    for req in sorted(requirements, key=lambda item: item.id_number):
        problems = _check_id(req, document, expected[req.variant], seen[req.variant])
        expected[req.variant] = req.id_number + 1

        existing = graph.requirements.get(req.id)
        if not problems and existing is not None:
            problems.append(
                f"Requirement {req.id} is already defined in document `{existing.document_path}`."
            )

        for description in problems:
            reporter.report(
                IssueType.INVALID_REQUIREMENT_ID,
                description,
                repo_name=req.repo_name,
                path=document.path,
                line=req.position,
            )
        if not problems:
            accepted.append(req)

    return sorted(accepted, key=lambda item: item.position)


def _check_id(req: Requirement, document: Document, expected: int, seen: Set[int]) -> List[str]:
    problems: List[str] = []
    _, prefix, level, number = req.id.split("-", 3)
    if prefix != document.req_spec.prefix:
        problems.append(
            f"Incorrect project abbreviation for requirement {req.id}. "
            f"Expected {document.req_spec.prefix}, got {prefix}."
        )
    if level != document.req_spec.level:
        problems.append(
            f"Incorrect requirement type for requirement {req.id}. "
            f"Expected {document.req_spec.level}, got {level}."
        )
    if number.startswith("0"):
        problems.append(f"Requirement number cannot begin with a 0: {req.id}. Got {number}.")

    if req.id_number < 1:
        problems.append(
            f"Invalid requirement sequence number for {req.id}: first requirement has to start with 001."
        )
        return problems

    if req.id_number in seen:
        problems.append(f"Invalid requirement sequence number for {req.id}, is duplicate.")
    elif req.id_number != expected:
        problems.append(
            f"Invalid requirement sequence number for {req.id}: missing requirements in between. "
            f"Expected ID Number {expected}."
        )
    seen.add(req.id_number)
    return problems


__all__ = ["check_document_sequence"]
