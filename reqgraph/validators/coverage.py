"""Implementation and test coverage of requirements."""

from __future__ import annotations

from ..diagnostics import IssueReporter, IssueType
from ..models import CodeType, Graph


def check_coverage(graph: Graph, reporter: IssueReporter) -> None:
    """Report requirements of implemented documents that lack code or tests."""
    for req in graph.requirements.values():
        document = req.document
        if document is None or not document.has_implementation() or req.is_deleted:
            continue

        implemented = any(tag.file.type.matches(CodeType.IMPLEMENTATION) for tag in req.tags)
        tested = any(tag.file.type.matches(CodeType.TESTS) for tag in req.tags)

        if implemented and tested:
            continue
        if not implemented and tested:
            issue_type = IssueType.REQ_TESTED_BUT_NOT_IMPLEMENTED
            description = f"Requirement {req.id} is tested, but it is not implemented."
        elif not implemented:
            issue_type = IssueType.REQ_NOT_IMPLEMENTED
            description = f"Requirement {req.id} is not implemented."
        else:
            issue_type = IssueType.REQ_NOT_TESTED
            description = f"Requirement {req.id} is not tested."
        reporter.report(issue_type, description, repo_name=req.repo_name, path=document.path, line=req.position)


__all__ = ["check_coverage"]
