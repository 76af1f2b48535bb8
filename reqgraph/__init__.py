"""Requirements traceability graphs built from markdown documents and annotated code."""

from .builder import BuildError, GraphBuilder, build_graph, build_graph_from_path
from .config import ConfigError, load_config
from .diagnostics import Issue, IssueSeverity, IssueType
from .merge import MergeError, load_graphs, merge_graphs
from .models import Graph
from .resolver import Resolver

__version__ = "0.1.0"

__all__ = [
    "BuildError",
    "ConfigError",
    "Graph",
    "GraphBuilder",
    "Issue",
    "IssueSeverity",
    "IssueType",
    "MergeError",
    "Resolver",
    "build_graph",
    "build_graph_from_path",
    "load_config",
    "load_graphs",
    "merge_graphs",
]
