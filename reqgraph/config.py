"""Configuration loading for reqgraph (.reqgraph.yml)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Pattern, Sequence, Tuple

import yaml

from .diagnostics import IssueSeverity, IssueType
from .logging import get_logger
from .repo_scanner import RepoScanner

CONFIG_FILENAME = ".reqgraph.yml"
DEFAULT_CODE_PARSER = "ctags"

_MATCH_ALL = ".*"

logger = get_logger("config")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is inconsistent."""


class AttributeType(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    ANY = "any"


@dataclass
class AttributeRule:
    """Constraint on one requirement attribute; values are matched with search semantics."""

    type: AttributeType
    value: Pattern[str]


@dataclass
class ReqSpec:
    """Identifies the shape of requirement IDs, optionally narrowed by an attribute value."""

    prefix: str
    level: str
    pattern: Optional[Pattern[str]] = None
    attr_key: str = ""
    attr_value: Optional[Pattern[str]] = None

    def __str__(self) -> str:
        if not self.attr_key or self.attr_value is None:
            return f"REQ-{self.prefix}-{self.level}"
        return f"REQ-{self.prefix}-{self.level} ({self.attr_key} == {self.attr_value.pattern.strip('^$')})"


@dataclass
class LinkSpec:
    """A valid child/parent pairing between two requirement specs."""

    child: ReqSpec
    parent: ReqSpec


@dataclass
class Schema:
    requirements: Pattern[str]
    attributes: Dict[str, AttributeRule] = field(default_factory=dict)
    asm_attributes: Dict[str, AttributeRule] = field(default_factory=dict)


@dataclass
class Implementation:
    """Code and test files implementing a document, plus tagger hints."""

    code_files: List[str] = field(default_factory=list)
    test_files: List[str] = field(default_factory=list)
    code_parser: str = DEFAULT_CODE_PARSER
    compilation_database: Optional[str] = None
    compiler_arguments: List[str] = field(default_factory=list)


@dataclass(eq=False)
class Document:
    """A certification document with its ID spec, schema and link rules."""

    path: str
    req_spec: ReqSpec
    schema: Schema
    link_specs: List[LinkSpec] = field(default_factory=list)
    implementation: Implementation = field(default_factory=Implementation)

    def has_implementation(self) -> bool:
        return bool(self.implementation.code_files)

    def matches_spec(self, req_spec: ReqSpec) -> bool:
        return req_spec.prefix == self.req_spec.prefix and req_spec.level == self.req_spec.level


@dataclass
class RepoConfig:
    name: str
    root: Path
    documents: List[Document] = field(default_factory=list)


@dataclass
class Config:
    """All repositories taking part in one build, keyed by repository name."""

    repos: Dict[str, RepoConfig] = field(default_factory=dict)
    target_repo: str = ""
    severity_overrides: Dict[IssueType, IssueSeverity] = field(default_factory=dict)

    def documents(self) -> Iterator[Tuple[str, Document]]:
        for name, repo in self.repos.items():
            for document in repo.documents:
                yield name, document

    def find_document(self, path: str) -> Optional[Tuple[str, Document]]:
        """Find a document by file name, ignoring the directories in ``path``."""
        wanted = Path(path).name
        for name, document in self.documents():
            if Path(document.path).name == wanted:
                return name, document
        return None

    def linked_specs(self) -> List[LinkSpec]:
        return [
            link
            for _, document in self.documents()
            for link in document.link_specs
            if link.child.prefix and link.child.level
        ]

    def repo_root(self, repo_name: str) -> Path:
        try:
            return self.repos[repo_name].root
        except KeyError as exc:
            raise ConfigError(f"Repository `{repo_name}` is not part of the configuration") from exc


def load_config(
    config_path: Path,
    *,
    direct_dependencies_only: bool = False,
    scanner: Optional[RepoScanner] = None,
) -> Config:
    """Load a repository configuration and every repository it links to.

    Parent repositories are always followed. Children repositories are followed
    unless ``direct_dependencies_only`` is set.
    """
    loader = _ConfigLoader(scanner or RepoScanner(), direct_dependencies_only)
    config_file = _resolve_config_path(config_path)
    data = _read_config(config_file)
    config = Config(target_repo=_repo_name(data, config_file))
    config.severity_overrides = _parse_severity_overrides(data.get("issues"))
    loader.load(config, config_file, data)
    loader.apply_common_attributes(config)
    return config


def make_document(
    path: str,
    prefix: str,
    level: str,
    *,
    parents: Sequence[Dict[str, Any]] = (),
    attributes: Sequence[Dict[str, Any]] = (),
    asm_attributes: Sequence[Dict[str, Any]] = (),
    implementation: Optional[Implementation] = None,
) -> Document:
    """Build a Document from raw configuration entries without touching the filesystem."""
    req_spec = ReqSpec(prefix=prefix, level=level)
    schema = Schema(requirements=re.compile(rf"(REQ|ASM)-{prefix}-{level}-(\d+)"))

    for raw in attributes:
        name, rule = _parse_attribute(raw)
        if name == "PARENTS":
            raise ConfigError(
                f"Invalid attribute Parents in document `{path}`: the parents attribute "
                "is implied by the parent declaration of the document"
            )
        schema.attributes[name] = rule

    link_specs = [_parse_link_spec(raw, prefix, level) for raw in parents]
    if link_specs:
        schema.attributes["PARENTS"] = AttributeRule(AttributeType.ANY, re.compile(_MATCH_ALL))

    for raw in asm_attributes:
        name, rule = _parse_attribute(raw)
        if name == "PARENTS":
            raise ConfigError(
                f"Invalid attribute Parents for assumptions in document `{path}`: assumptions "
                "always refer to requirements of the same document"
            )
        schema.asm_attributes[name] = rule
    schema.asm_attributes["PARENTS"] = AttributeRule(
        AttributeType.REQUIRED, re.compile(rf"REQ-{prefix}-{level}-(\d+)")
    )

    return Document(
        path=path,
        req_spec=req_spec,
        schema=schema,
        link_specs=link_specs,
        implementation=implementation or Implementation(),
    )


class _ConfigLoader:
    def __init__(self, scanner: RepoScanner, direct_dependencies_only: bool) -> None:
        self._scanner = scanner
        self._direct_only = direct_dependencies_only
        self._common: Dict[str, AttributeRule] = {}

    def load(self, config: Config, config_file: Path, data: Dict[str, Any]) -> None:
        name = _repo_name(data, config_file)
        if name in config.repos:
            return
        root = config_file.parent
        logger.debug("Loading configuration for repository %s from %s", name, config_file)

        for raw in _as_list(data.get("common_attributes")):
            attr_name, rule = _parse_attribute(raw)
            if attr_name in self._common:
                raise ConfigError(
                    f"Common attribute `{attr_name}` in repository `{name}` is already defined elsewhere"
                )
            self._common[attr_name] = rule

        repo = RepoConfig(name=name, root=root)
        for raw_doc in _as_list(data.get("documents")):
            repo.documents.append(self._parse_document(name, root, _as_dict(raw_doc)))
        config.repos[name] = repo

        if not self._direct_only:
            for raw_link in _as_list(data.get("children_repositories")):
                self._follow(config, name, root, _as_dict(raw_link), "child")

        parent_link = _as_dict(data.get("parent_repository"))
        if parent_link:
            self._follow(config, name, root, parent_link, "parent")

    def apply_common_attributes(self, config: Config) -> None:
        for _, document in config.documents():
            for attr_name, rule in self._common.items():
                if attr_name in document.schema.attributes:
                    raise ConfigError(
                        f"Document `{document.path}` redefines attribute `{attr_name}`, "
                        "which is listed as a common attribute"
                    )
                document.schema.attributes[attr_name] = rule

    def _follow(
        self, config: Config, name: str, root: Path, link: Dict[str, Any], relation: str
    ) -> None:
        linked_name = _as_str(link.get("name"))
        linked_path = _as_str(link.get("path"))
        if not linked_name or not linked_path:
            raise ConfigError(f"Repository `{name}` declares a {relation} repository without name and path")
        linked_file = _resolve_config_path(root / linked_path)
        linked_data = _read_config(linked_file)
        found_name = _repo_name(linked_data, linked_file)
        if found_name != linked_name:
            raise ConfigError(
                f"Repository `{name}` declares {relation} repository `{linked_name}`, "
                f"but `{found_name}` was found at {linked_file.parent}"
            )
        self.load(config, linked_file, linked_data)

    def _parse_document(self, repo_name: str, root: Path, raw: Dict[str, Any]) -> Document:
        path = _as_str(raw.get("path"))
        prefix = _as_str(raw.get("prefix"))
        level = _as_str(raw.get("level"))
        if not path or not prefix or not level:
            raise ConfigError(f"Documents in repository `{repo_name}` need a path, prefix and level")
        if not (root / path).is_file():
            raise ConfigError(f"Document with path `{path}` in repository `{repo_name}` cannot be read")

        parents = raw.get("parent")
        if isinstance(parents, dict):
            parents = [parents]

        return make_document(
            path,
            prefix,
            level,
            parents=[_as_dict(item) for item in _as_list(parents)],
            attributes=[_as_dict(item) for item in _as_list(raw.get("attributes"))],
            asm_attributes=[_as_dict(item) for item in _as_list(raw.get("asm_attributes"))],
            implementation=self._parse_implementation(root, _as_dict(raw.get("implementation"))),
        )

    def _parse_implementation(self, root: Path, raw: Dict[str, Any]) -> Implementation:
        return Implementation(
            code_files=self._find_files(root, _as_dict(raw.get("code"))),
            test_files=self._find_files(root, _as_dict(raw.get("tests"))),
            code_parser=_as_str(raw.get("code_parser")) or DEFAULT_CODE_PARSER,
            compilation_database=_as_str(raw.get("compilation_database")),
            compiler_arguments=_as_str_list(raw.get("compiler_arguments")),
        )

    def _find_files(self, root: Path, query: Dict[str, Any]) -> List[str]:
        paths = _as_str_list(query.get("paths"))
        if not paths:
            return []
        matching = _as_str(query.get("matching_pattern"))
        try:
            return self._scanner.find_files(
                root,
                paths,
                _compile(matching) if matching else None,
                [_compile(pattern) for pattern in _as_str_list(query.get("ignored_patterns"))],
            )
        except OSError as exc:
            raise ConfigError(f"Unable to list implementation files: {exc}") from exc


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Configuration file {path} is not valid UTF-8: {exc}") from exc
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _repo_name(data: Dict[str, Any], config_file: Path) -> str:
    name = _as_str(data.get("repo_name"))
    if not name:
        raise ConfigError(f"{config_file} does not define `repo_name`")
    return name


def _parse_attribute(raw: Dict[str, Any]) -> Tuple[str, AttributeRule]:
    required = raw.get("required")
    if isinstance(required, bool):
        required = "true" if required else "false"
    required_str = (_as_str(required) or "").strip().lower()
    if required_str in {"", "true"}:
        attr_type = AttributeType.REQUIRED
    elif required_str == "false":
        attr_type = AttributeType.OPTIONAL
    elif required_str == "any":
        attr_type = AttributeType.ANY
    else:
        raise ConfigError(f"Unable to parse attribute `required` field: `{required}`")

    value = _as_str(raw.get("value"))
    name = (_as_str(raw.get("name")) or "").upper()
    return name, AttributeRule(attr_type, _compile(value or _MATCH_ALL))


def _parse_link_spec(raw: Dict[str, Any], prefix: str, level: str) -> LinkSpec:
    parent_prefix = _as_str(raw.get("prefix")) or ""
    parent_level = _as_str(raw.get("level")) or ""
    child_key, child_rule = _parse_attribute(_as_dict(raw.get("child_attribute")))
    parent_key, parent_rule = _parse_attribute(_as_dict(raw.get("parent_attribute")))
    return LinkSpec(
        child=ReqSpec(
            prefix=prefix,
            level=level,
            pattern=re.compile(rf"REQ-{prefix}-{level}-(\d+)"),
            attr_key=child_key,
            attr_value=child_rule.value,
        ),
        parent=ReqSpec(
            prefix=parent_prefix,
            level=parent_level,
            pattern=re.compile(rf"REQ-{parent_prefix}-{parent_level}-(\d+)"),
            attr_key=parent_key,
            attr_value=parent_rule.value,
        ),
    )


def _parse_severity_overrides(value: Any) -> Dict[IssueType, IssueSeverity]:
    overrides: Dict[IssueType, IssueSeverity] = {}
    for type_name, severity_name in _as_dict(_as_dict(value).get("severity")).items():
        try:
            overrides[IssueType(str(type_name))] = IssueSeverity(str(severity_name).capitalize())
        except ValueError as exc:
            raise ConfigError(
                f"Invalid severity override `{type_name}: {severity_name}`"
            ) from exc
    return overrides


def _compile(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Unable to parse `{pattern}` as a regular expression: {exc}") from exc


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "AttributeRule",
    "AttributeType",
    "CONFIG_FILENAME",
    "Config",
    "ConfigError",
    "Document",
    "Implementation",
    "LinkSpec",
    "RepoConfig",
    "ReqSpec",
    "Schema",
    "load_config",
    "make_document",
]
