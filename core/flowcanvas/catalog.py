"""
Node-type catalog.

Caches the engine's node-type listing, answers "is this type installed",
and groups types into palette categories the way the engine's own editor
does: ``codex.categories`` first, then ``defaults.category``, then
``category``, else ``Other``.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from flowcanvas.graph.model import NodeTypeInfo

if TYPE_CHECKING:
    from flowcanvas.client import EngineClient

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"


def _as_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    if isinstance(value, str):
        return [value]
    return []


def categories_of(node_type: NodeTypeInfo) -> list[str]:
    """Palette categories for one node type (never empty)."""
    codex_categories = _as_list((node_type.codex or {}).get("categories"))
    if codex_categories:
        return codex_categories
    for candidate in (node_type.defaults.get("category"), node_type.category):
        categories = _as_list(candidate)
        if categories:
            return categories
    return [DEFAULT_CATEGORY]


class NodeTypeCatalog(Mapping[str, NodeTypeInfo]):
    """Read-only mapping of type name -> ``NodeTypeInfo``."""

    def __init__(self, node_types: Iterable[NodeTypeInfo] = ()):
        self._types: dict[str, NodeTypeInfo] = {t.name: t for t in node_types}

    @classmethod
    def from_raw(cls, data: Iterable[Mapping[str, Any]] | Mapping[str, Any]) -> "NodeTypeCatalog":
        """Build from the engine's listing (a list, or a mapping of entries).

        Entries without a ``name`` or that fail validation are skipped.
        """
        entries = data.values() if isinstance(data, Mapping) else data
        node_types: list[NodeTypeInfo] = []
        for entry in entries:
            if not isinstance(entry, Mapping) or not entry.get("name"):
                logger.warning(f"Skipping node type without a name: {entry!r:.80}")
                continue
            try:
                node_types.append(NodeTypeInfo.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed node type {entry['name']}: {e}")
        logger.info(f"Loaded {len(node_types)} node types")
        return cls(node_types)

    @classmethod
    async def load(cls, client: "EngineClient") -> "NodeTypeCatalog":
        """Fetch the listing from the engine."""
        return cls.from_raw(await client.list_node_types())

    # ── Mapping protocol ──

    def __getitem__(self, name: str) -> NodeTypeInfo:
        return self._types[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    # ── Queries ──

    def get_node_type(self, name: str) -> NodeTypeInfo | None:
        return self._types.get(name)

    def is_installed(self, name: str) -> bool:
        return name in self._types

    def categorized(self) -> dict[str, list[NodeTypeInfo]]:
        """Group types by category; a type may appear under several."""
        grouped: dict[str, list[NodeTypeInfo]] = {}
        for node_type in self._types.values():
            for category in categories_of(node_type):
                if category:
                    grouped.setdefault(category, []).append(node_type)
        return grouped

    def search(self, text: str) -> list[NodeTypeInfo]:
        """Case-insensitive match on name, display name, and description."""
        needle = text.strip().lower()
        if not needle:
            return list(self._types.values())
        return [
            t
            for t in self._types.values()
            if needle in t.name.lower()
            or needle in t.display_name.lower()
            or needle in t.description.lower()
        ]
