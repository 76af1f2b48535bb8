"""Tests for reqgraph.validators.flow."""

from __future__ import annotations

from reqgraph.config import make_document
from reqgraph.diagnostics import IssueReporter, IssueSeverity, IssueType
from reqgraph.models import FlowTag, Graph
from reqgraph.validators import check_flow_tags, register_flow_tags

SWL = make_document("SWL.md", "TEST", "SWL")


def _tag(tag_id: str, position: int, direction: str = "In", **kwargs) -> FlowTag:  # type: ignore[no-untyped-def]
    return FlowTag(
        id=tag_id,
        caller="app",
        callee="driver",
        direction=direction,
        position=position,
        document=SWL,
        repo_name="flight",
        **kwargs,
    )


def test_register_flow_tags_reports_duplicates_prefixes_and_gaps() -> None:
    graph = Graph()
    reporter = IssueReporter()
    tags = [
        _tag("DF-TEST-1", 3),
        _tag("DF-TEST-3", 4),
        _tag("DF-TEST-5", 5),
        _tag("DF-OTHER-2", 6),
        _tag("DF-TEST-1", 7),
        _tag("CF-TEST-1", 10, direction=""),
    ]

    stored = register_flow_tags(tags, SWL, graph, reporter, repo_name="flight")

    assert [tag.id for tag in stored] == ["DF-TEST-1", "DF-TEST-3", "DF-TEST-5", "CF-TEST-1"]
    assert list(graph.flow_tags) == ["DF-TEST-1", "DF-TEST-3", "DF-TEST-5", "CF-TEST-1"]
    assert graph.flow_tags["DF-TEST-1"].position == 3
    assert [(issue.type, issue.description, issue.line) for issue in reporter.issues] == [
        (IssueType.INVALID_FLOW_ID, "Invalid data/control flow tag prefix in 'DF-OTHER-2'", 6),
        (IssueType.DUPLICATE_FLOW_ID, "Duplicate data/control flow tag 'DF-TEST-1'", 7),
        (IssueType.MISSING_FLOW_ID, "Missing flow tag 'DF-TEST-2'", 0),
        (IssueType.MISSING_FLOW_ID, "Missing flow tag 'DF-TEST-4'", 0),
    ]
    assert all(issue.path == "SWL.md" and issue.repo_name == "flight" for issue in reporter.issues)


def test_check_flow_tags_reports_unlinked_tags_and_directions() -> None:
    graph = Graph()
    graph.flow_tags = {
        "DF-TEST-1": _tag("DF-TEST-1", 3, direction="`In/Out`", reqs=["REQ-TEST-SWL-1"]),
        "DF-TEST-2": _tag("DF-TEST-2", 4, direction="Bad"),
        "DF-TEST-3": _tag("DF-TEST-3", 5, direction="Out", deleted=True),
        "CF-TEST-1": _tag("CF-TEST-1", 8, direction="", reqs=["REQ-TEST-SWL-1"]),
    }
    reporter = IssueReporter()

    check_flow_tags(graph, reporter)

    not_implemented, bad_direction = reporter.issues
    assert not_implemented.type is IssueType.FLOW_NOT_IMPLEMENTED
    assert not_implemented.severity is IssueSeverity.NOTE
    assert not_implemented.description == "Data/control flow tag 'DF-TEST-2' has no linked requirements"
    assert bad_direction.type is IssueType.INVALID_FLOW_DIRECTION
    assert bad_direction.severity is IssueSeverity.MAJOR
    assert bad_direction.description == (
        "Invalid direction 'Bad' for data flow tag 'DF-TEST-2'. Allowed values are 'In', 'Out' and 'In/Out'"
    )
    assert (bad_direction.path, bad_direction.line) == ("SWL.md", 4)
