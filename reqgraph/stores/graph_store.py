"""Versioned JSON export and import of requirement graphs."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config import (
    AttributeRule,
    AttributeType,
    Config,
    Document,
    Implementation,
    LinkSpec,
    RepoConfig,
    ReqSpec,
    Schema,
)
from ..diagnostics import Issue, IssueSeverity, IssueType
from ..models import (
    Attributes,
    CodeFile,
    CodeSymbol,
    CodeType,
    FlowTag,
    Graph,
    Position,
    ReqLink,
    ReqVariant,
    Requirement,
    SourceRange,
)

_GRAPH_VERSION = 1

DocumentIndex = Dict[Tuple[str, str], Document]


class GraphStoreError(RuntimeError):
    """Raised when an exported graph cannot be read or is not compatible."""


def export_graph(graph: Graph, path: Path) -> None:
    """Write ``graph`` to ``path`` as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(graph_to_dict(graph), indent=2, sort_keys=True), encoding="utf-8")


def load_graph(path: Path) -> Graph:
    """Read a graph written by ``export_graph`` and restore its back-references."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise GraphStoreError(f"Unable to read graph file {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise GraphStoreError(f"Graph file {path} is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise GraphStoreError(f"Graph file {path} is not valid JSON: {exc}") from exc
    return graph_from_dict(data)


def graph_to_dict(graph: Graph) -> Dict[str, Any]:
    return {
        "version": _GRAPH_VERSION,
        "config": _config_to_dict(graph.config) if graph.config is not None else None,
        "requirements": [requirement_to_dict(req, strip=False) for req in graph.requirements.values()],
        "flow_tags": [flow_tag_to_dict(tag, strip=False) for tag in graph.flow_tags.values()],
        "code_symbols": [_symbol_to_dict(symbol) for symbol in graph.iter_code_symbols()],
        "issues": [issue.to_dict() for issue in graph.issues],
    }


def graph_from_dict(data: Any) -> Graph:
    if not isinstance(data, dict):
        raise GraphStoreError("Graph export must contain a JSON object")
    if data.get("version") != _GRAPH_VERSION:
        raise GraphStoreError(
            f"Unsupported graph export version {data.get('version')!r}; expected {_GRAPH_VERSION}"
        )
    try:
        graph = _graph_from_dict(data)
    except (KeyError, TypeError, ValueError, re.error) as exc:
        raise GraphStoreError(f"Malformed graph export: {exc}") from exc
    graph.link()
    return graph


def requirement_to_dict(req: Requirement, *, strip: bool = True) -> Dict[str, Any]:
    """Serialise a requirement.

    The stripped form leaves out the position, back-references and linked code,
    and is what two requirements are compared by when graphs are merged.
    """
    data: Dict[str, Any] = {
        "id": req.id,
        "variant": req.variant.value,
        "id_number": req.id_number,
        "title": req.title,
        "body": req.body,
        "parent_ids": list(req.parent_ids),
        "attributes": req.attributes.to_dict(),
        "repo_name": req.repo_name,
        "document": req.document_path,
    }
    if not strip:
        data["position"] = req.position
        data["tags"] = [_symbol_ref(symbol) for symbol in req.tags]
    return data


def flow_tag_to_dict(tag: FlowTag, *, strip: bool = True) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": tag.id,
        "caller": tag.caller,
        "callee": tag.callee,
        "direction": tag.direction,
        "description": tag.description,
        "deleted": tag.deleted,
        "repo_name": tag.repo_name,
        "document": tag.document_path,
    }
    if not strip:
        data["position"] = tag.position
        data["reqs"] = list(tag.reqs)
    return data


def _graph_from_dict(data: Mapping[str, Any]) -> Graph:
    raw_config = data.get("config")
    config = _config_from_dict(raw_config) if raw_config is not None else None
    documents: DocumentIndex = {}
    if config is not None:
        for repo_name, document in config.documents():
            documents[(repo_name, document.path)] = document

    graph = Graph(config=config)
    for raw in data.get("code_symbols", []):
        graph.add_code_symbols([_symbol_from_dict(raw, documents)])
    symbols = {_key_dict(symbol.key): symbol for symbol in graph.iter_code_symbols()}

    for raw in data.get("requirements", []):
        req = _requirement_from_dict(raw, documents)
        req.tags = [symbols[_ref_key(ref)] for ref in raw.get("tags", []) if _ref_key(ref) in symbols]
        graph.requirements[req.id] = req

    for raw in data.get("flow_tags", []):
        tag = FlowTag(
            id=str(raw["id"]),
            caller=str(raw.get("caller", "")),
            callee=str(raw.get("callee", "")),
            direction=str(raw.get("direction", "")),
            description=str(raw.get("description", "")),
            deleted=bool(raw.get("deleted", False)),
            position=int(raw.get("position", 0)),
            repo_name=str(raw.get("repo_name", "")),
            reqs=[str(item) for item in raw.get("reqs", [])],
        )
        tag.document = documents.get((tag.repo_name, str(raw.get("document", ""))))
        graph.flow_tags[tag.id] = tag

    graph.issues = [Issue.from_dict(raw) for raw in data.get("issues", [])]
    return graph


def _requirement_from_dict(raw: Mapping[str, Any], documents: DocumentIndex) -> Requirement:
    repo_name = str(raw.get("repo_name", ""))
    return Requirement(
        id=str(raw["id"]),
        variant=ReqVariant(raw["variant"]),
        id_number=int(raw["id_number"]),
        title=str(raw.get("title", "")),
        body=str(raw.get("body", "")),
        parent_ids=[str(item) for item in raw.get("parent_ids", [])],
        attributes=Attributes(raw.get("attributes") or {}),
        position=int(raw.get("position", 0)),
        document=documents.get((repo_name, str(raw.get("document", "")))),
        repo_name=repo_name,
    )


def _symbol_to_dict(symbol: CodeSymbol) -> Dict[str, Any]:
    return {
        "file": {"repo_name": symbol.file.repo_name, "path": symbol.file.path, "type": symbol.file.type.value},
        "tag": symbol.tag,
        "symbol": symbol.symbol,
        "line": symbol.line,
        "links": [
            {
                "id": link.id,
                "range": {
                    "start": {"line": link.range.start.line, "character": link.range.start.character},
                    "end": {"line": link.range.end.line, "character": link.range.end.character},
                },
            }
            for link in symbol.links
        ],
        "optional": symbol.optional,
        "document": symbol.document_path,
    }


def _symbol_from_dict(raw: Mapping[str, Any], documents: DocumentIndex) -> CodeSymbol:
    raw_file = raw["file"]
    code_file = CodeFile(
        repo_name=str(raw_file["repo_name"]),
        path=str(raw_file["path"]),
        type=CodeType(raw_file["type"]),
    )
    links = [
        ReqLink(
            id=str(link["id"]),
            range=SourceRange(
                start=Position(int(link["range"]["start"]["line"]), int(link["range"]["start"]["character"])),
                end=Position(int(link["range"]["end"]["line"]), int(link["range"]["end"]["character"])),
            ),
        )
        for link in raw.get("links", [])
    ]
    return CodeSymbol(
        file=code_file,
        tag=str(raw["tag"]),
        symbol=str(raw.get("symbol", "")),
        line=int(raw.get("line", 0)),
        links=links,
        optional=bool(raw.get("optional", False)),
        document=documents.get((code_file.repo_name, str(raw.get("document", "")))),
    )


def _symbol_ref(symbol: CodeSymbol) -> Dict[str, Any]:
    return {
        "repo_name": symbol.file.repo_name,
        "path": symbol.file.path,
        "type": symbol.file.type.value,
        "tag": symbol.tag,
        "line": symbol.line,
    }


def _ref_key(ref: Mapping[str, Any]) -> Tuple[str, str, str, str, int]:
    return (
        str(ref["repo_name"]),
        str(ref["path"]),
        str(ref["type"]),
        str(ref["tag"]),
        int(ref["line"]),
    )


def _key_dict(key: Tuple[CodeFile, str, int]) -> Tuple[str, str, str, str, int]:
    code_file, tag, line = key
    return (code_file.repo_name, code_file.path, code_file.type.value, tag, line)


def _config_to_dict(config: Config) -> Dict[str, Any]:
    return {
        "target_repo": config.target_repo,
        "severity_overrides": {
            issue_type.value: severity.value for issue_type, severity in config.severity_overrides.items()
        },
        "repos": {
            name: {
                "name": repo.name,
                "root": str(repo.root),
                "documents": [_document_to_dict(document) for document in repo.documents],
            }
            for name, repo in config.repos.items()
        },
    }


def _config_from_dict(raw: Mapping[str, Any]) -> Config:
    config = Config(target_repo=str(raw.get("target_repo", "")))
    for type_name, severity_name in (raw.get("severity_overrides") or {}).items():
        config.severity_overrides[IssueType(type_name)] = IssueSeverity(severity_name)
    for name, raw_repo in (raw.get("repos") or {}).items():
        config.repos[name] = RepoConfig(
            name=str(raw_repo.get("name", name)),
            root=Path(raw_repo.get("root", ".")),
            documents=[_document_from_dict(item) for item in raw_repo.get("documents", [])],
        )
    return config


def _document_to_dict(document: Document) -> Dict[str, Any]:
    implementation = document.implementation
    return {
        "path": document.path,
        "req_spec": _spec_to_dict(document.req_spec),
        "schema": {
            "requirements": document.schema.requirements.pattern,
            "attributes": _rules_to_dict(document.schema.attributes),
            "asm_attributes": _rules_to_dict(document.schema.asm_attributes),
        },
        "link_specs": [
            {"child": _spec_to_dict(link.child), "parent": _spec_to_dict(link.parent)} for link in document.link_specs
        ],
        "implementation": {
            "code_files": list(implementation.code_files),
            "test_files": list(implementation.test_files),
            "code_parser": implementation.code_parser,
            "compilation_database": implementation.compilation_database,
            "compiler_arguments": list(implementation.compiler_arguments),
        },
    }


def _document_from_dict(raw: Mapping[str, Any]) -> Document:
    raw_schema = raw["schema"]
    raw_impl = raw.get("implementation") or {}
    implementation = Implementation(
        code_files=list(raw_impl.get("code_files", [])),
        test_files=list(raw_impl.get("test_files", [])),
        compilation_database=raw_impl.get("compilation_database"),
        compiler_arguments=list(raw_impl.get("compiler_arguments", [])),
    )
    if raw_impl.get("code_parser"):
        implementation.code_parser = str(raw_impl["code_parser"])
    return Document(
        path=str(raw["path"]),
        req_spec=_spec_from_dict(raw["req_spec"]),
        schema=Schema(
            requirements=re.compile(raw_schema["requirements"]),
            attributes=_rules_from_dict(raw_schema.get("attributes") or {}),
            asm_attributes=_rules_from_dict(raw_schema.get("asm_attributes") or {}),
        ),
        link_specs=[
            LinkSpec(child=_spec_from_dict(item["child"]), parent=_spec_from_dict(item["parent"]))
            for item in raw.get("link_specs", [])
        ],
        implementation=implementation,
    )


def _spec_to_dict(spec: ReqSpec) -> Dict[str, Any]:
    return {
        "prefix": spec.prefix,
        "level": spec.level,
        "pattern": spec.pattern.pattern if spec.pattern is not None else None,
        "attr_key": spec.attr_key,
        "attr_value": spec.attr_value.pattern if spec.attr_value is not None else None,
    }


def _spec_from_dict(raw: Mapping[str, Any]) -> ReqSpec:
    return ReqSpec(
        prefix=str(raw["prefix"]),
        level=str(raw["level"]),
        pattern=_optional_pattern(raw.get("pattern")),
        attr_key=str(raw.get("attr_key") or ""),
        attr_value=_optional_pattern(raw.get("attr_value")),
    )


def _rules_to_dict(rules: Mapping[str, AttributeRule]) -> Dict[str, Dict[str, str]]:
    return {name: {"type": rule.type.value, "value": rule.value.pattern} for name, rule in rules.items()}


def _rules_from_dict(raw: Mapping[str, Any]) -> Dict[str, AttributeRule]:
    return {
        str(name): AttributeRule(AttributeType(item["type"]), re.compile(item["value"]))
        for name, item in raw.items()
    }


def _optional_pattern(value: Optional[str]) -> Optional[re.Pattern[str]]:
    return re.compile(value) if value is not None else None


__all__ = [
    "GraphStoreError",
    "export_graph",
    "flow_tag_to_dict",
    "graph_from_dict",
    "graph_to_dict",
    "load_graph",
    "requirement_to_dict",
]
