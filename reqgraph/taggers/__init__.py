"""Code tagger plugins and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .base import CodeTagger, TaggedSymbol, TaggerError
from .ctags import CtagsTagger
from .tree_sitter import TREE_SITTER_AVAILABLE, TreeSitterTagger

_ENTRY_POINT_GROUP = "reqgraph.taggers"

_BUILTIN_FACTORIES: Dict[str, Callable[[], CodeTagger]] = {
    "ctags": CtagsTagger,
    "tree_sitter": TreeSitterTagger,
}


class TaggerRegistry:
    """Name to tagger lookup used by the graph builder."""

    def __init__(self, taggers: Optional[Mapping[str, CodeTagger]] = None) -> None:
        self._taggers: Dict[str, CodeTagger] = {}
        for name, tagger in (taggers or {}).items():
            self.register(name, tagger)

    def register(self, name: str, tagger: CodeTagger) -> None:
        if not isinstance(tagger, CodeTagger):
            raise TypeError(f"Tagger registered as '{name}' is not a CodeTagger instance")
        self._taggers[name] = tagger

    def get(self, name: str) -> CodeTagger:
        tagger = self._taggers.get(name)
        if tagger is None:
            available = ", ".join(self.names()) or "none"
            raise TaggerError(f"Code parser not found: {name}. Available parsers: {available}")
        return tagger

    def names(self) -> List[str]:
        return sorted(self._taggers)

    def __contains__(self, name: object) -> bool:
        return name in self._taggers


def default_registry() -> TaggerRegistry:
    """Return a registry with the built-in taggers and any installed plugins."""

    registry = TaggerRegistry()
    for name, factory in _BUILTIN_FACTORIES.items():
        registry.register(name, factory())

    for entry in _iter_entry_points():
        if entry.name in registry:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - plugin import failure
            raise TaggerError(f"Failed to load tagger entry point '{entry.name}': {exc}") from exc
        registry.register(entry.name, _coerce_tagger(loaded))
    return registry


def _coerce_tagger(obj: object) -> CodeTagger:
    if isinstance(obj, CodeTagger):
        return obj
    if isinstance(obj, type) and issubclass(obj, CodeTagger):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, CodeTagger):
            return instance
    raise TypeError("Tagger entry point must be a CodeTagger subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CodeTagger",
    "CtagsTagger",
    "TREE_SITTER_AVAILABLE",
    "TaggedSymbol",
    "TaggerError",
    "TaggerRegistry",
    "TreeSitterTagger",
    "default_registry",
]
