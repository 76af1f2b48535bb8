"""Tree-sitter powered tagger for C, C++ and Python sources."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from ..logging import get_logger
from ..models import CodeFile
from .base import CodeTagger, TaggedSymbol, TaggerError

try:  # pragma: no cover - optional dependency
    import tree_sitter_language_pack
    from tree_sitter import Parser
    from tree_sitter_language_pack import get_parser

    TREE_SITTER_AVAILABLE = True
    _GRAMMAR_ERRORS: Tuple[Type[Exception], ...] = (LookupError, tree_sitter_language_pack.Error)
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    Parser = None  # type: ignore[assignment,misc]
    get_parser = None  # type: ignore[assignment]
    TREE_SITTER_AVAILABLE = False
    _GRAMMAR_ERRORS = (LookupError,)


_LANGUAGE_BY_SUFFIX = {
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hh": "cpp",
    ".hpp": "cpp",
    ".py": "python",
}

_C_CONTAINERS = {
    "translation_unit",
    "declaration_list",
    "preproc_if",
    "preproc_ifdef",
    "preproc_else",
    "preproc_elif",
    "template_declaration",
}
_DECLARATOR_WRAPPERS = {"pointer_declarator", "reference_declarator", "attributed_declarator"}
_NAME_NODES = {"identifier", "field_identifier", "type_identifier"}

_WHITESPACE = re.compile(r"\s+")
_POINTER_SPACING = re.compile(r"\s*([*&]+)\s*")

logger = get_logger("taggers.tree_sitter")


class TreeSitterTagger(CodeTagger):
    """Tags public functions with a symbol shared by their declarations and definition.

    C and C++ symbols are the namespace/class qualified name followed by the
    normalised parameter types, so a prototype in a header and the definition
    in a source file share one symbol. Classes, structs, enums, typedefs and
    ``using`` aliases are reported as optional symbols.
    """

    name = "tree_sitter"

    def __init__(
        self, enabled: Optional[bool] = None, parser_factory: Optional[Callable[[str], Parser]] = None
    ) -> None:
        self._enabled = TREE_SITTER_AVAILABLE if enabled is None else enabled
        self._parser_factory = parser_factory or get_parser
        self._parsers: Dict[str, Parser] = {}

    def tag_code(
        self,
        repo_name: str,
        root: Path,
        code_files: Sequence[CodeFile],
        *,
        compilation_database: Optional[str] = None,
        compiler_arguments: Sequence[str] = (),
    ) -> Dict[CodeFile, List[TaggedSymbol]]:
        if not code_files:
            return {}
        if not self._enabled:
            raise TaggerError("tree-sitter tagger requested but tree-sitter grammars are not installed")

        result: Dict[CodeFile, List[TaggedSymbol]] = {}
        for code_file in code_files:
            language = language_for_file(code_file.path)
            if language is None:
                continue
            try:
                source = (Path(root) / code_file.path).read_bytes()
            except OSError as exc:
                raise TaggerError(f"Unable to read {code_file}: {exc}") from exc
            tree = self._get_parser(language).parse(source)
            if language == "python":
                collector: _Collector = _PythonCollector(source, _module_name(code_file.path))
            else:
                collector = _CCollector(source)
            collector.visit(tree.root_node, [])
            if collector.symbols:
                result[code_file] = sorted(collector.symbols, key=lambda item: item.line)
        logger.debug("tree-sitter tagged %d files in %s", len(result), repo_name)
        return result

    def _get_parser(self, language: str) -> Parser:
        parser = self._parsers.get(language)
        if parser is None:
            try:
                parser = self._parser_factory(language)
            except _GRAMMAR_ERRORS as exc:
                raise TaggerError(f"tree-sitter grammar for {language} is unavailable: {exc}") from exc
            self._parsers[language] = parser
        return parser


def language_for_file(path: str) -> Optional[str]:
    return _LANGUAGE_BY_SUFFIX.get(PurePosixPath(path).suffix.lower())


class _Collector(ABC):
    def __init__(self, source: bytes) -> None:
        self.source = source
        self.symbols: List[TaggedSymbol] = []

    @abstractmethod
    def visit(self, node, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        """Collect the symbols below ``node``."""

    def text(self, node) -> str:  # type: ignore[no-untyped-def]
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def add(self, node, tag: str, symbol: str, optional: bool = False) -> None:  # type: ignore[no-untyped-def]
        self.symbols.append(
            TaggedSymbol(tag=tag, symbol=symbol, line=node.start_point[0] + 1, optional=optional)
        )


class _CCollector(_Collector):
    def visit(self, node, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        for child in node.children:
            self._visit_node(child, scope)

    def _visit_node(self, node, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        kind = node.type
        if kind in _C_CONTAINERS:
            self.visit(node, scope)
        elif kind == "namespace_definition":
            name_node = node.child_by_field_name("name")
            name = self.text(name_node) if name_node is not None else ""
            body = node.child_by_field_name("body")
            # Anonymous and detail namespaces are private.
            if name and name != "detail" and body is not None:
                self.visit(body, scope + name.split("::"))
        elif kind == "linkage_specification":
            body = node.child_by_field_name("body")
            if body is not None:
                self._visit_node(body, scope)
        elif kind in ("class_specifier", "struct_specifier", "union_specifier"):
            self._visit_record(node, scope)
        elif kind == "enum_specifier":
            name_node = node.child_by_field_name("name")
            if name_node is not None and node.child_by_field_name("body") is not None:
                name = self.text(name_node)
                self.add(node, name, "::".join(scope + [name]), optional=True)
        elif kind == "function_definition":
            self._add_function(node, node.child_by_field_name("declarator"), scope)
        elif kind in ("declaration", "field_declaration"):
            type_node = node.child_by_field_name("type")
            if type_node is not None:
                self._visit_node(type_node, scope)
            for declarator in node.children_by_field_name("declarator"):
                self._add_function(node, declarator, scope)
        elif kind == "type_definition":
            type_node = node.child_by_field_name("type")
            if type_node is not None:
                self._visit_node(type_node, scope)
            for declarator in node.children_by_field_name("declarator"):
                name_node = _innermost_name(declarator)
                if name_node is not None:
                    name = self.text(name_node)
                    self.add(node, name, "::".join(scope + [name]), optional=True)
        elif kind == "alias_declaration":
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                name = self.text(name_node)
                self.add(node, name, "::".join(scope + [name]), optional=True)

    def _visit_record(self, node, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        body = node.child_by_field_name("body")
        if name_node is None or body is None:
            return
        name = self.text(name_node)
        self.add(node, name, "::".join(scope + [name]), optional=True)

        public = node.type != "class_specifier"
        inner = scope + [name]
        for child in body.children:
            if child.type == "access_specifier":
                public = self.text(child).strip().startswith("public")
            elif public:
                self._visit_node(child, inner)

    def _add_function(self, node, declarator, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        function = _function_declarator(declarator)
        if function is None:
            return
        name_node = function.child_by_field_name("declarator")
        if name_node is None or name_node.type == "parenthesized_declarator":
            # Function pointer.
            return
        qualified = _WHITESPACE.sub("", self.text(name_node))
        if not qualified or _is_deleted(self.text(node)):
            return
        tag = qualified.rsplit("::", 1)[-1]
        params = function.child_by_field_name("parameters")
        signature = ", ".join(self._parameter_types(params)) if params is not None else ""
        qualifiers = "".join(
            " " + self.text(child) for child in function.children if child.type == "type_qualifier"
        )
        symbol = "::".join(scope + [qualified]) + f"({signature}){qualifiers}"
        self.add(node, tag, symbol)

    def _parameter_types(self, params) -> List[str]:  # type: ignore[no-untyped-def]
        types: List[str] = []
        for param in params.named_children:
            if param.type == "comment":
                continue
            if param.type == "variadic_parameter":
                types.append("...")
                continue
            end = param.end_byte
            default = param.child_by_field_name("default_value")
            if default is not None:
                end = default.start_byte
            text = self.source[param.start_byte : end]
            declarator = param.child_by_field_name("declarator")
            name_node = _innermost_name(declarator) if declarator is not None else None
            if name_node is not None and name_node.start_byte >= param.start_byte and name_node.end_byte <= end:
                start = name_node.start_byte - param.start_byte
                stop = name_node.end_byte - param.start_byte
                text = text[:start] + text[stop:]
            cleaned = text.decode("utf-8", errors="replace").rstrip().rstrip("=").strip()
            cleaned = _POINTER_SPACING.sub(r"\1", _WHITESPACE.sub(" ", cleaned)).strip()
            types.append(cleaned)
        return types


class _PythonCollector(_Collector):
    def __init__(self, source: bytes, module: str) -> None:
        super().__init__(source)
        self._module = module

    def visit(self, node, scope: List[str]) -> None:  # type: ignore[no-untyped-def]
        for child in node.children:
            definition = child
            if child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is None:
                    continue
            if definition.type not in ("function_definition", "class_definition"):
                continue
            name_node = definition.child_by_field_name("name")
            if name_node is None:
                continue
            name = self.text(name_node)
            if _is_private(name):
                continue
            qualname = ".".join(scope + [name])
            symbol = f"{self._module}:{qualname}" if self._module else qualname
            if definition.type == "function_definition":
                self.add(definition, name, symbol)
            else:
                self.add(definition, name, symbol, optional=True)
                body = definition.child_by_field_name("body")
                if body is not None:
                    self.visit(body, scope + [name])


def _function_declarator(declarator):  # type: ignore[no-untyped-def]
    node = declarator
    while node is not None and node.type in _DECLARATOR_WRAPPERS:
        node = node.child_by_field_name("declarator") or (node.named_children[-1] if node.named_children else None)
    if node is not None and node.type == "function_declarator":
        return node
    return None


def _innermost_name(declarator):  # type: ignore[no-untyped-def]
    node = declarator
    while node is not None:
        if node.type in _NAME_NODES:
            return node
        node = node.child_by_field_name("declarator")
    return None


def _is_deleted(text: str) -> bool:
    return _WHITESPACE.sub("", text).endswith("=delete;")


def _is_private(name: str) -> bool:
    return name.startswith("_") and not (name.startswith("__") and name.endswith("__"))


def _module_name(path: str) -> str:
    parts = list(PurePosixPath(path).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


__all__ = ["TREE_SITTER_AVAILABLE", "TreeSitterTagger", "language_for_file"]
