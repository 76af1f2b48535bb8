"""Tests for reqgraph.merge."""

from __future__ import annotations

from pathlib import Path

import pytest

from reqgraph.config import Config, RepoConfig, make_document
from reqgraph.diagnostics import Issue, IssueSeverity, IssueType
from reqgraph.merge import MergeError, load_graphs, merge_graphs
from reqgraph.models import FlowTag, Graph
from reqgraph.stores import export_graph
from tests._fixtures.graphs import add_requirements, code_symbol, requirement


def _system_graph(body: str = "The system shall start.", position: int = 1) -> Graph:
    sys_doc = make_document("SYS.md", "TEST", "SYS")
    config = Config(
        repos={"system": RepoConfig("system", Path("/repos/system"), [sys_doc])},
        target_repo="system",
        severity_overrides={IssueType.NO_SHALL_IN_BODY: IssueSeverity.MINOR},
    )
    graph = add_requirements(
        Graph(config=config),
        requirement(sys_doc, "REQ-TEST-SYS-1", body=body, position=position, repo_name="system"),
    )
    graph.link()
    return graph


def _flight_graph(direction: str = "In") -> Graph:
    swl_doc = make_document("SWL.md", "TEST", "SWL", parents=[{"prefix": "TEST", "level": "SYS"}])
    config = Config(
        repos={"flight": RepoConfig("flight", Path("/repos/flight"), [swl_doc])},
        target_repo="flight",
        severity_overrides={
            IssueType.NO_SHALL_IN_BODY: IssueSeverity.MAJOR,
            IssueType.REQ_NOT_TESTED: IssueSeverity.MINOR,
        },
    )
    swl = requirement(swl_doc, "REQ-TEST-SWL-1", attributes={"Parents": "REQ-TEST-SYS-1"})
    graph = add_requirements(Graph(config=config), swl)
    symbol = code_symbol(swl_doc, "src/a.c", "a", 2, "REQ-TEST-SWL-1")
    graph.add_code_symbols([symbol])
    swl.tags = [symbol]
    graph.flow_tags["DF-TEST-1"] = FlowTag(
        id="DF-TEST-1", direction=direction, document=swl_doc, repo_name="flight", reqs=["REQ-TEST-SWL-1"]
    )
    graph.issues = [
        Issue(
            repo_name="flight",
            path="SWL.md",
            line=1,
            description="Requirement REQ-TEST-SWL-1 is not tested.",
            severity=IssueSeverity.MINOR,
            type=IssueType.REQ_NOT_TESTED,
        )
    ]
    graph.link()
    return graph


def test_merge_graphs_links_across_repositories() -> None:
    system, flight = _system_graph(), _flight_graph()

    merged = merge_graphs([system, flight])

    assert list(merged.requirements) == ["REQ-TEST-SYS-1", "REQ-TEST-SWL-1"]
    assert merged.requirements["REQ-TEST-SYS-1"].children == ["REQ-TEST-SWL-1"]
    assert system.requirements["REQ-TEST-SYS-1"].children == []
    assert merged.issues == flight.issues
    assert merged.config is not None
    assert merged.config.target_repo == "system, flight"
    assert list(merged.config.repos) == ["system", "flight"]
    assert merged.config.severity_overrides == {
        IssueType.NO_SHALL_IN_BODY: IssueSeverity.MINOR,
        IssueType.REQ_NOT_TESTED: IssueSeverity.MINOR,
    }

    swl = merged.requirements["REQ-TEST-SWL-1"]
    (symbol,) = merged.code_symbols["flight"]
    assert swl.tags == [symbol] and swl.tags[0] is symbol
    assert swl.document is symbol.document
    assert swl.document is merged.config.repos["flight"].documents[0]
    assert merged.flow_tags["DF-TEST-1"].reqs == ["REQ-TEST-SWL-1"]


def test_merging_a_graph_with_itself_changes_nothing() -> None:
    flight = _flight_graph()

    merged = merge_graphs([flight, flight])

    assert list(merged.requirements) == list(flight.requirements)
    assert len(merged.issues) == len(flight.issues)
    assert len(merged.code_symbols["flight"]) == 1
    assert len(merged.requirements["REQ-TEST-SWL-1"].tags) == 1
    assert merged.flow_tags["DF-TEST-1"].reqs == ["REQ-TEST-SWL-1"]
    assert merged.config is not None and merged.config.target_repo == "flight, flight"


def test_merge_ignores_position_differences() -> None:
    merged = merge_graphs([_system_graph(position=1), _system_graph(position=12)])

    assert merged.requirements["REQ-TEST-SYS-1"].position == 1


def test_merge_rejects_conflicting_requirements() -> None:
    with pytest.raises(MergeError, match="different version of same requirement found: REQ-TEST-SYS-1"):
        merge_graphs([_system_graph(), _system_graph(body="The system shall start quickly.")])


def test_merge_rejects_conflicting_flow_tags() -> None:
    with pytest.raises(MergeError, match="different version of same flow tag found: DF-TEST-1"):
        merge_graphs([_flight_graph(), _flight_graph(direction="Out")])


def test_load_graphs(tmp_path: Path) -> None:
    export_graph(_system_graph(), tmp_path / "system.json")
    export_graph(_flight_graph(), tmp_path / "flight.json")

    merged = load_graphs([tmp_path / "system.json", tmp_path / "flight.json"])

    assert merged.requirements["REQ-TEST-SWL-1"].parents == ["REQ-TEST-SYS-1"]
    assert merged.count_by_severity()[IssueSeverity.MINOR] == 1
