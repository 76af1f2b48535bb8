"""Tests for reqgraph.validators.coverage."""

from __future__ import annotations

from reqgraph.config import Implementation, make_document
from reqgraph.diagnostics import IssueReporter, IssueSeverity, IssueType
from reqgraph.models import CodeType, Graph
from reqgraph.validators import check_coverage
from tests._fixtures.graphs import add_requirements, code_symbol, requirement

SWL = make_document(
    "SWL.md",
    "TEST",
    "SWL",
    implementation=Implementation(code_files=["src/a.c"], test_files=["test/test_a.c"]),
)
SYS = make_document("SYS.md", "TEST", "SYS")


def test_check_coverage_reports_missing_code_and_tests() -> None:
    done = requirement(SWL, "REQ-TEST-SWL-1", position=1)
    untested = requirement(SWL, "REQ-TEST-SWL-2", position=4)
    tested_only = requirement(SWL, "REQ-TEST-SWL-3", position=7)
    nothing = requirement(SWL, "REQ-TEST-SWL-4", position=10)
    deleted = requirement(SWL, "REQ-TEST-SWL-5", title="DELETED", position=13)
    system = requirement(SYS, "REQ-TEST-SYS-1")
    graph = add_requirements(Graph(), done, untested, tested_only, nothing, deleted, system)

    impl = code_symbol(SWL, "src/a.c", "a", 2)
    test = code_symbol(SWL, "test/test_a.c", "test_a", 2, code_type=CodeType.TESTS)
    done.tags = [impl, test]
    untested.tags = [impl]
    tested_only.tags = [test]
    reporter = IssueReporter()

    check_coverage(graph, reporter)

    assert [(issue.type, issue.severity, issue.line, issue.description) for issue in reporter.issues] == [
        (IssueType.REQ_NOT_TESTED, IssueSeverity.NOTE, 4, "Requirement REQ-TEST-SWL-2 is not tested."),
        (
            IssueType.REQ_TESTED_BUT_NOT_IMPLEMENTED,
            IssueSeverity.MAJOR,
            7,
            "Requirement REQ-TEST-SWL-3 is tested, but it is not implemented.",
        ),
        (IssueType.REQ_NOT_IMPLEMENTED, IssueSeverity.NOTE, 10, "Requirement REQ-TEST-SWL-4 is not implemented."),
    ]
    assert all(issue.path == "SWL.md" for issue in reporter.issues)


def test_check_coverage_respects_severity_overrides() -> None:
    req = requirement(SWL, "REQ-TEST-SWL-1")
    reporter = IssueReporter({IssueType.REQ_NOT_IMPLEMENTED: IssueSeverity.MAJOR})

    check_coverage(add_requirements(Graph(), req), reporter)

    (issue,) = reporter.issues
    assert issue.severity is IssueSeverity.MAJOR
