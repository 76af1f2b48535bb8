"""Cross-reference resolution and consistency checks over a complete graph."""

from __future__ import annotations

from typing import List, Optional

from .diagnostics import Issue, IssueReporter
from .logging import get_logger
from .models import Graph
from .validators import (
    check_coverage,
    check_flow_tags,
    check_requirement,
    deduplicate_code_symbols,
    link_code_symbols,
)

logger = get_logger("resolver")


class Resolver:
    """Validate a graph and attach code symbols and requirements to what they reference.

    ``resolve`` only reads parse-time fields. It rebuilds ``Requirement.tags``
    and ``FlowTag.reqs`` from scratch and returns the issues it found, which
    the caller is expected to add to ``Graph.issues``.
    """

    def __init__(self, graph: Graph, reporter: Optional[IssueReporter] = None) -> None:
        self.graph = graph
        if reporter is None:
            overrides = graph.config.severity_overrides if graph.config is not None else None
            reporter = IssueReporter(overrides)
        self.reporter = reporter

    def resolve(self) -> List[Issue]:
        graph = self.graph
        start = len(self.reporter.issues)

        for req in graph.requirements.values():
            req.tags = []
        for tag in graph.flow_tags.values():
            tag.reqs = []

        for req in graph.requirements.values():
            if req.is_deleted:
                continue
            check_requirement(req, graph, self.reporter)

        parent_ids = deduplicate_code_symbols(graph, self.reporter)
        link_code_symbols(graph, self.reporter, parent_ids)
        check_coverage(graph, self.reporter)
        check_flow_tags(graph, self.reporter)

        issues = self.reporter.issues[start:]
        logger.debug("Resolved %d requirements with %d issues", len(graph.requirements), len(issues))
        return issues


__all__ = ["Resolver"]
