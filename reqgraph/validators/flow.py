"""Control and data flow tag checks."""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..config import Document
from ..diagnostics import IssueReporter, IssueType
from ..models import FlowTag, Graph

VALID_DIRECTIONS = ("In", "Out", "In/Out")


def register_flow_tags(
    tags: Sequence[FlowTag],
    document: Document,
    graph: Graph,
    reporter: IssueReporter,
    repo_name: str = "",
) -> List[FlowTag]:
    """Store the flow tags of one document and report duplicates, foreign tags and gaps."""
    numbers: Dict[str, List[int]] = {}
    stored: List[FlowTag] = []

    for tag in tags:
        if tag.id in graph.flow_tags:
            reporter.report(
                IssueType.DUPLICATE_FLOW_ID,
                f"Duplicate data/control flow tag '{tag.id}'",
                repo_name=tag.repo_name,
                path=document.path,
                line=tag.position,
            )
            continue

        kind, project, number = tag.id.split("-", 2)
        if project != document.req_spec.prefix:
            reporter.report(
                IssueType.INVALID_FLOW_ID,
                f"Invalid data/control flow tag prefix in '{tag.id}'",
                repo_name=tag.repo_name,
                path=document.path,
                line=tag.position,
            )
            continue

        graph.flow_tags[tag.id] = tag
        stored.append(tag)
        numbers.setdefault(f"{kind}-{project}", []).append(int(number))

    for family in sorted(numbers):
        present = set(numbers[family])
        for missing in range(1, max(present)):
            if missing not in present:
                reporter.report(
                    IssueType.MISSING_FLOW_ID,
                    f"Missing flow tag '{family}-{missing}'",
                    repo_name=repo_name,
                    path=document.path,
                )
    return stored


def check_flow_tags(graph: Graph, reporter: IssueReporter) -> None:
    """Report unreferenced flow tags and data flows with an unknown direction."""
    for tag in graph.flow_tags.values():
        if not tag.reqs and not tag.deleted:
            reporter.report(
                IssueType.FLOW_NOT_IMPLEMENTED,
                f"Data/control flow tag '{tag.id}' has no linked requirements",
                repo_name=tag.repo_name,
                path=tag.document_path,
                line=tag.position,
            )

        direction = tag.direction.strip("`")
        if tag.kind == "DF" and direction not in VALID_DIRECTIONS:
            reporter.report(
                IssueType.INVALID_FLOW_DIRECTION,
                f"Invalid direction '{tag.direction}' for data flow tag '{tag.id}'. "
                "Allowed values are 'In', 'Out' and 'In/Out'",
                repo_name=tag.repo_name,
                path=tag.document_path,
                line=tag.position,
            )


__all__ = ["VALID_DIRECTIONS", "check_flow_tags", "register_flow_tags"]
