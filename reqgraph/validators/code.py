"""Checks between code symbols and the requirements they reference."""

from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, List, Tuple

from ..diagnostics import IssueReporter, IssueType
from ..models import CodeSymbol, CodeType, Graph

SymbolKey = Tuple[str, CodeType, str]
ParentLookup = Callable[[CodeSymbol], List[str]]


def deduplicate_code_symbols(graph: Graph, reporter: IssueReporter) -> ParentLookup:
    """Check that every declaration of one symbol links the same requirements.

    Symbols are grouped per owning document, code type and stable symbol id, so
    a declaration in one document may legitimately link different requirements
    than a definition owned by another document. The first linked declaration
    of a group is canonical. Returns a function giving the effective parent
    IDs of any symbol.
    """
    canonical: Dict[SymbolKey, CodeSymbol] = {}

    for symbol in graph.iter_code_symbols():
        if not symbol.links or not symbol.symbol:
            continue
        key = _symbol_key(symbol)
        first = canonical.get(key)
        if first is None:
            canonical[key] = symbol
            continue
        if Counter(first.link_ids) != Counter(symbol.link_ids):
            earlier, later = sorted((first, symbol), key=lambda item: (item.file.path, item.line))
            reporter.report(
                IssueType.INVALID_REQUIREMENT_IN_CODE,
                f"LLR declarations differ in {earlier.tag}@{earlier.file.path}:{earlier.line} "
                f"and {later.tag}@{later.file.path}:{later.line}.",
                repo_name=symbol.file.repo_name,
                path=symbol.file.path,
                line=symbol.line,
            )

    def parent_ids(symbol: CodeSymbol) -> List[str]:
        if not symbol.symbol:
            return symbol.link_ids
        first = canonical.get(_symbol_key(symbol))
        return first.link_ids if first is not None else []

    return parent_ids


def link_code_symbols(graph: Graph, reporter: IssueReporter, parent_ids: ParentLookup) -> None:
    """Attach code symbols to the requirements they implement or test."""
    for symbol in graph.iter_code_symbols():
        location = f"{symbol.tag}@{symbol.file.path}:{symbol.line}"

        def report(issue_type: IssueType, description: str) -> None:
            reporter.report(
                issue_type,
                description,
                repo_name=symbol.file.repo_name,
                path=symbol.file.path,
                line=symbol.line,
            )

        ids = parent_ids(symbol)
        if not ids and not symbol.optional:
            report(
                IssueType.MISSING_REQUIREMENT_IN_CODE,
                f"Function {symbol.tag}@{symbol.file}:{symbol.line} has no parents.",
            )

        for parent_id in ids:
            document = symbol.document
            if document is not None and not document.schema.requirements.search(parent_id):
                report(
                    IssueType.INVALID_REQUIREMENT_IN_CODE,
                    f"Invalid reference in function {location} in repo `{symbol.file.repo_name}`, "
                    f"`{parent_id}` does not match requirement format in document `{document.path}`.",
                )

            parent = graph.requirements.get(parent_id)
            if parent is None:
                report(
                    IssueType.INVALID_REQUIREMENT_IN_CODE,
                    f"Invalid reference in function {location} in repo `{symbol.file.repo_name}`, "
                    f"{parent_id} does not exist.",
                )
            elif parent.is_deleted:
                report(
                    IssueType.INVALID_REQUIREMENT_IN_CODE,
                    f"Invalid reference in function {location} in repo `{symbol.file.repo_name}`, "
                    f"{parent_id} is deleted.",
                )
            elif symbol not in parent.tags:
                parent.tags.append(symbol)


def _symbol_key(symbol: CodeSymbol) -> SymbolKey:
    return (symbol.document_path, symbol.file.type, symbol.symbol)


__all__ = ["deduplicate_code_symbols", "link_code_symbols"]
