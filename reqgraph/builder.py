"""Assemble a requirements graph from configured documents and code."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from .annotations import scan_code_files
from .config import Config, ConfigError, Document, RepoConfig, load_config
from .diagnostics import IssueReporter
from .logging import get_logger, log_issue_summary
from .models import CodeFile, CodeSymbol, CodeType, Graph
from .parsing import ParseError, parse_document_file
from .resolver import Resolver
from .taggers import TaggedSymbol, TaggerError, TaggerRegistry, default_registry
from .validators import check_document_sequence, register_flow_tags

LINK_ALWAYS = "always"
LINK_WHEN_CLEAN = "when_clean"
_LINK_POLICIES = (LINK_ALWAYS, LINK_WHEN_CLEAN)

AnnotationScanner = Callable[[Path, Mapping[CodeFile, Sequence[TaggedSymbol]], Document], List[CodeSymbol]]


class BuildError(RuntimeError):
    """Raised when a document, its code or the configuration cannot be processed."""


class GraphBuilder:
    """Builds one Graph per configuration.

    Repositories and documents are processed in configuration order. Each
    document is parsed, its IDs are sequence-checked and its code is tagged and
    scanned for ``@llr`` references. The resolver then runs once over the
    complete graph. With ``link_policy="when_clean"`` the parent/child
    back-references are only populated when resolving produced no issues.
    """

    def __init__(
        self,
        config: Config,
        registry: Optional[TaggerRegistry] = None,
        scanner: Optional[AnnotationScanner] = None,
        link_policy: str = LINK_ALWAYS,
    ) -> None:
        if link_policy not in _LINK_POLICIES:
            raise ValueError(f"Unknown link policy '{link_policy}'; expected one of {', '.join(_LINK_POLICIES)}")
        self.config = config
        self.registry = registry or default_registry()
        self.scanner = scanner or scan_code_files
        self.link_policy = link_policy
        self.logger = get_logger("builder")

    def build(self) -> Graph:
        self.logger.info("Building requirements graph")
        graph = Graph(config=self.config)
        reporter = IssueReporter(self.config.severity_overrides)

        for repo_name, repo in self.config.repos.items():
            self.logger.info("Processing repo: %s", repo_name)
            for document in repo.documents:
                self.logger.info("Processing doc: %s", document.path)
                self._add_document(graph, repo, document, reporter)
                self.logger.info("Processing code: %s", document.path)
                self._add_code(graph, repo, document)

        resolve_issues = Resolver(graph, reporter).resolve()
        graph.issues = list(reporter.issues)

        if self.link_policy == LINK_ALWAYS or not resolve_issues:
            graph.link()
        else:
            self.logger.info("Skipping parent/child links: resolving reported %d issues", len(resolve_issues))

        self.logger.debug(
            "Graph has %d requirements and %d flow tags", len(graph.requirements), len(graph.flow_tags)
        )
        log_issue_summary(self.logger, graph.issues)
        return graph

    def _add_document(self, graph: Graph, repo: RepoConfig, document: Document, reporter: IssueReporter) -> None:
        try:
            parsed = parse_document_file(repo.root, document, repo.name)
        except ParseError as exc:
            raise BuildError(f"Error parsing `{document.path}` in repo `{repo.name}`: {exc}") from exc
        except OSError as exc:
            raise BuildError(f"Unable to read `{document.path}` in repo `{repo.name}`: {exc}") from exc

        register_flow_tags(parsed.flow_tags, document, graph, reporter, repo.name)
        accepted = check_document_sequence(parsed.requirements, document, graph, reporter)
        for req in accepted:
            graph.requirements[req.id] = req
        self.logger.debug(
            "Added %d of %d requirements from %s", len(accepted), len(parsed.requirements), document.path
        )

    def _add_code(self, graph: Graph, repo: RepoConfig, document: Document) -> None:
        implementation = document.implementation
        code_files = [CodeFile(repo.name, path, CodeType.IMPLEMENTATION) for path in implementation.code_files]
        code_files.extend(CodeFile(repo.name, path, CodeType.TESTS) for path in implementation.test_files)
        if not code_files:
            return

        try:
            tagger = self.registry.get(implementation.code_parser)
            tagged = tagger.tag_code(
                repo.name,
                repo.root,
                code_files,
                compilation_database=implementation.compilation_database,
                compiler_arguments=implementation.compiler_arguments,
            )
            symbols = self.scanner(repo.root, tagged, document)
        except TaggerError as exc:
            raise BuildError(f"Failed parsing implementation of `{document.path}` in repo `{repo.name}`: {exc}") from exc
        except OSError as exc:
            raise BuildError(f"Unable to read code of `{document.path}` in repo `{repo.name}`: {exc}") from exc

        added = graph.add_code_symbols(symbols)
        self.logger.debug("Added %d code symbols for %s", added, document.path)


def build_graph(config: Config, **kwargs) -> Graph:  # type: ignore[no-untyped-def]
    """Build the graph of ``config``; keyword arguments are passed to GraphBuilder."""
    return GraphBuilder(config, **kwargs).build()


def build_graph_from_path(config_path: Path, *, direct_dependencies_only: bool = False, **kwargs) -> Graph:  # type: ignore[no-untyped-def]
    """Load the configuration at ``config_path`` and build its graph."""
    try:
        config = load_config(Path(config_path), direct_dependencies_only=direct_dependencies_only)
    except ConfigError as exc:
        raise BuildError(f"Invalid configuration at {config_path}: {exc}") from exc
    return build_graph(config, **kwargs)


__all__ = [
    "BuildError",
    "GraphBuilder",
    "LINK_ALWAYS",
    "LINK_WHEN_CLEAN",
    "build_graph",
    "build_graph_from_path",
]
