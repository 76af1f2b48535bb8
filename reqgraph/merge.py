"""Combine independently built graphs into one."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Sequence, Tuple

from .config import Config, Document
from .logging import get_logger
from .models import Graph
from .stores.graph_store import flow_tag_to_dict, graph_from_dict, graph_to_dict, load_graph, requirement_to_dict

logger = get_logger("merge")


class MergeError(RuntimeError):
    """Raised when two graphs disagree about the same requirement or flow tag."""


def merge_graphs(graphs: Iterable[Graph]) -> Graph:
    """Return a new graph holding every requirement, flow tag, symbol and issue of ``graphs``.

    The inputs are left untouched. A requirement or flow tag present in more
    than one graph must be identical apart from its position and references.
    Repository configurations of later graphs replace earlier ones.
    """
    merged = Graph()
    for graph in graphs:
        _merge_into(merged, graph_from_dict(graph_to_dict(graph)))

    _rebind_documents(merged)
    symbols = {symbol.key: symbol for symbol in merged.iter_code_symbols()}
    for req in merged.requirements.values():
        tags = []
        for tag in req.tags:
            resolved = symbols.get(tag.key)
            if resolved is not None and resolved not in tags:
                tags.append(resolved)
        req.tags = tags

    merged.link()
    logger.debug(
        "Merged graph has %d requirements and %d issues", len(merged.requirements), len(merged.issues)
    )
    return merged


def load_graphs(paths: Sequence[Path]) -> Graph:
    """Load previously exported graphs and merge them."""
    return merge_graphs(load_graph(Path(path)) for path in paths)


def _merge_into(merged: Graph, other: Graph) -> None:
    for req_id, req in other.requirements.items():
        existing = merged.requirements.get(req_id)
        if existing is None:
            merged.requirements[req_id] = req
            continue
        if requirement_to_dict(existing) != requirement_to_dict(req):
            raise MergeError(f"different version of same requirement found: {req_id}")
        existing.tags.extend(tag for tag in req.tags if tag not in existing.tags)

    for tag_id, tag in other.flow_tags.items():
        existing_tag = merged.flow_tags.get(tag_id)
        if existing_tag is None:
            merged.flow_tags[tag_id] = tag
            continue
        if flow_tag_to_dict(existing_tag) != flow_tag_to_dict(tag):
            raise MergeError(f"different version of same flow tag found: {tag_id}")
        existing_tag.reqs.extend(req_id for req_id in tag.reqs if req_id not in existing_tag.reqs)

    for symbol in other.iter_code_symbols():
        bucket = merged.code_symbols.setdefault(symbol.file.repo_name, [])
        if symbol not in bucket:
            bucket.append(symbol)

    for issue in other.issues:
        if issue not in merged.issues:
            merged.issues.append(issue)

    if other.config is None:
        return
    if merged.config is None:
        merged.config = Config(
            repos=dict(other.config.repos),
            target_repo=other.config.target_repo,
            severity_overrides=dict(other.config.severity_overrides),
        )
        return
    merged.config.target_repo = f"{merged.config.target_repo}, {other.config.target_repo}"
    merged.config.repos.update(other.config.repos)
    for issue_type, severity in other.config.severity_overrides.items():
        merged.config.severity_overrides.setdefault(issue_type, severity)


def _rebind_documents(graph: Graph) -> None:
    if graph.config is None:
        return
    documents: Dict[Tuple[str, str], Document] = {
        (repo_name, document.path): document for repo_name, document in graph.config.documents()
    }

    def lookup(repo_name: str, current: Document | None) -> Document | None:
        if current is None:
            return None
        return documents.get((repo_name, current.path), current)

    for req in graph.requirements.values():
        req.document = lookup(req.repo_name, req.document)
    for tag in graph.flow_tags.values():
        tag.document = lookup(tag.repo_name, tag.document)
    for symbol in graph.iter_code_symbols():
        symbol.document = lookup(symbol.file.repo_name, symbol.document)


__all__ = ["MergeError", "load_graphs", "merge_graphs"]
