"""
Node naming and creation.

Node names double as connection keys, so every insertion and rename goes
through ``generate_unique_name``: a free name is kept as-is, a taken one
gets the smallest free numeric suffix (``"HTTP Request"`` ->
``"HTTP Request1"`` -> ``"HTTP Request2"``).
"""

import copy
import random
import string
import time
from collections.abc import Iterable

from flowcanvas.graph.model import Node, NodeTypeInfo

_ID_ALPHABET = string.digits + string.ascii_lowercase

FALLBACK_NODE_NAME = "Node"


def generate_unique_name(base: str, existing_names: Iterable[str]) -> str:
    """Return ``base`` if unused, else ``base`` + the smallest free positive integer."""
    taken = set(existing_names)
    if base not in taken:
        return base

    counter = 1
    while f"{base}{counter}" in taken:
        counter += 1
    return f"{base}{counter}"


def generate_node_id() -> str:
    """Opaque node id: millisecond timestamp plus 9 random base36 characters."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"node-{time.time_ns() // 1_000_000}-{suffix}"


def default_node_name(node_type: NodeTypeInfo) -> str:
    """Base name for a new node of ``node_type`` when the caller gives none."""
    default = node_type.defaults.get("name")
    if isinstance(default, str) and default:
        return default
    return node_type.display_name or node_type.name or FALLBACK_NODE_NAME


def create_node(
    node_type: NodeTypeInfo,
    position: tuple[float, float],
    name: str | None = None,
    existing_nodes: Iterable[Node] = (),
) -> Node:
    """Build a new node for ``node_type`` without inserting it anywhere.

    The name comes from ``name`` or the type's default, made unique against
    ``existing_nodes``. Parameters start as a copy of the type's defaults so
    later edits never leak back into the catalog entry.
    """
    base_name = name or default_node_name(node_type)
    return Node(
        id=generate_node_id(),
        name=generate_unique_name(base_name, (n.name for n in existing_nodes)),
        type=node_type.name,
        type_version=node_type.version,
        position=position,
        parameters=copy.deepcopy(node_type.initial_parameters()),
        credentials={},
        disabled=False,
    )
