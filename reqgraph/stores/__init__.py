"""Persistence helpers for requirement graphs."""

from .graph_store import (
    GraphStoreError,
    export_graph,
    flow_tag_to_dict,
    graph_from_dict,
    graph_to_dict,
    load_graph,
    requirement_to_dict,
)

__all__ = [
    "GraphStoreError",
    "export_graph",
    "flow_tag_to_dict",
    "graph_from_dict",
    "graph_to_dict",
    "load_graph",
    "requirement_to_dict",
]
