"""Tests for reqgraph.stores.graph_store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from reqgraph.config import Config, Implementation, RepoConfig, make_document
from reqgraph.diagnostics import IssueSeverity, IssueType
from reqgraph.models import FlowTag, Graph
from reqgraph.resolver import Resolver
from reqgraph.stores import GraphStoreError, export_graph, graph_from_dict, graph_to_dict, load_graph
from reqgraph.stores.graph_store import requirement_to_dict
from tests._fixtures.graphs import add_requirements, code_symbol, requirement


def _graph(root: Path) -> Graph:
    sys_doc = make_document("docs/SYS.md", "TEST", "SYS", attributes=[{"name": "Safety", "required": "false"}])
    swl_doc = make_document(
        "docs/SWL.md",
        "TEST",
        "SWL",
        parents=[{"prefix": "TEST", "level": "SYS", "parent_attribute": {"name": "Safety", "value": "^Yes$"}}],
        attributes=[{"name": "Flow", "required": "false"}],
        implementation=Implementation(code_files=["src/a.c"], code_parser="tree_sitter"),
    )
    config = Config(
        repos={"flight": RepoConfig("flight", root, [sys_doc, swl_doc])},
        target_repo="flight",
        severity_overrides={IssueType.NO_SHALL_IN_BODY: IssueSeverity.MINOR},
    )
    graph = add_requirements(
        Graph(config=config),
        requirement(sys_doc, "REQ-TEST-SYS-1", attributes={"Safety": "Yes"}),
        requirement(
            swl_doc,
            "REQ-TEST-SWL-1",
            body="The software starts.",
            attributes={"Parents": "REQ-TEST-SYS-1", "Flow": "DF-TEST-1"},
            position=7,
        ),
    )
    graph.flow_tags["DF-TEST-1"] = FlowTag(
        id="DF-TEST-1", caller="app", callee="drv", direction="In", position=3, document=swl_doc, repo_name="flight"
    )
    graph.add_code_symbols([code_symbol(swl_doc, "src/a.c", "a", 2, "REQ-TEST-SWL-1", symbol="a()")])
    graph.issues = Resolver(graph).resolve()
    graph.link()
    return graph


def test_export_and_load_graph(tmp_path: Path) -> None:
    graph = _graph(tmp_path)
    target = tmp_path / "out" / "graph.json"

    export_graph(graph, target)
    loaded = load_graph(target)

    assert json.loads(target.read_text(encoding="utf-8"))["version"] == 1
    assert graph_to_dict(loaded) == graph_to_dict(graph)
    assert [issue.severity for issue in loaded.issues] == [IssueSeverity.MINOR, IssueSeverity.NOTE]

    swl = loaded.requirements["REQ-TEST-SWL-1"]
    assert loaded.requirements["REQ-TEST-SYS-1"].children == ["REQ-TEST-SWL-1"]
    assert swl.parents == ["REQ-TEST-SYS-1"]
    assert swl.tags[0] is loaded.code_symbols["flight"][0]
    assert swl.document is loaded.code_symbols["flight"][0].document
    assert swl.document is loaded.flow_tags["DF-TEST-1"].document
    assert swl.document.implementation.code_parser == "tree_sitter"
    assert swl.document.link_specs[0].parent.attr_value.pattern == "^Yes$"
    assert loaded.config is not None and loaded.config.repos["flight"].root == tmp_path


def test_requirement_to_dict_strip() -> None:
    graph = _graph(Path("."))
    req = graph.requirements["REQ-TEST-SWL-1"]

    stripped = requirement_to_dict(req)
    full = requirement_to_dict(req, strip=False)

    assert stripped["attributes"] == {"PARENTS": "REQ-TEST-SYS-1", "FLOW": "DF-TEST-1"}
    assert stripped["document"] == "docs/SWL.md"
    assert "position" not in stripped and "tags" not in stripped
    assert full["position"] == 7
    assert full["tags"] == [{"repo_name": "flight", "path": "src/a.c", "type": "Implementation", "tag": "a", "line": 2}]


def test_graph_from_dict_rejects_other_versions() -> None:
    with pytest.raises(GraphStoreError, match="Unsupported graph export version 2"):
        graph_from_dict({"version": 2})
    with pytest.raises(GraphStoreError, match="JSON object"):
        graph_from_dict([])


def test_graph_from_dict_rejects_malformed_entries() -> None:
    with pytest.raises(GraphStoreError, match="Malformed graph export"):
        graph_from_dict({"version": 1, "requirements": [{"variant": "REQ", "id_number": 1}]})
    with pytest.raises(GraphStoreError, match="Malformed graph export"):
        graph_from_dict({"version": 1, "issues": [{"severity": "Fatal", "type": "NoShallInBody"}]})


def test_load_graph_errors(tmp_path: Path) -> None:
    with pytest.raises(GraphStoreError, match="Unable to read"):
        load_graph(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(GraphStoreError, match="not valid JSON"):
        load_graph(broken)

    binary = tmp_path / "binary.json"
    binary.write_bytes(b"\xff\xfe{}")
    with pytest.raises(GraphStoreError, match="not valid UTF-8"):
        load_graph(binary)
