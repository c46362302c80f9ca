"""
Connection transforms and traversal.

All transforms take a connection aggregate and return a new one; the input
is never mutated, so a reader holding the old aggregate keeps a consistent
view until the caller swaps in the result.

Aggregates may hold ``Edge`` models or the engine's plain ``{node, type, index}``
dicts; every function parses its input first, and results always hold
``Edge`` models.

Absent nodes are not errors: removing a connection that does not exist, or
asking for the neighbours of an unknown node, yields an unchanged aggregate
or an empty list.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flowcanvas.graph.model import (
    MAIN_CONNECTION,
    Connections,
    Edge,
    Port,
    Workflow,
    connections_from_wire,
)
from flowcanvas.graph.naming import generate_unique_name

logger = logging.getLogger(__name__)


def _parse(connections: Mapping[str, Any] | None) -> Connections:
    # Validation builds fresh containers; Edge instances are frozen and shared
    return connections_from_wire(connections)


def _prune(connections: Connections) -> Connections:
    """Drop channels whose slots are all empty, then sources with no channels."""
    pruned: Connections = {}
    for source, channels in connections.items():
        kept = {channel: slots for channel, slots in channels.items() if any(slots)}
        if kept:
            pruned[source] = kept
    return pruned


# ---------------------------------------------------------------------------
# Mutating transforms (copy-on-write)
# ---------------------------------------------------------------------------


def build_connection(
    source_name: str,
    target_name: str,
    source_type: str = MAIN_CONNECTION,
    target_type: str = MAIN_CONNECTION,
    source_index: int = 0,
    target_index: int = 0,
    existing_connections: Connections | None = None,
) -> Connections:
    """Return a new aggregate with ``source[source_index] -> target[target_index]`` added.

    Missing scaffolding is created, padding the positional array with empty
    slots up to ``source_index``. Adding an edge that already exists is a
    no-op. Port capacity is not checked here; see ``build_connection_checked``.
    """
    connections = _parse(existing_connections)

    slots = connections.setdefault(source_name, {}).setdefault(source_type, [])
    while len(slots) <= source_index:
        slots.append([])

    edge = Edge(node=target_name, type=target_type, index=target_index)
    if edge not in slots[source_index]:
        slots[source_index].append(edge)

    return connections


def remove_connection(
    source_name: str,
    target_name: str,
    source_type: str = MAIN_CONNECTION,
    existing_connections: Connections | None = None,
) -> Connections:
    """Remove every ``source_type`` edge from ``source_name`` to ``target_name``.

    All source slots and all target ports are affected. Channels and source
    entries left without edges are dropped from the result.
    """
    connections = _parse(existing_connections)

    channels = connections.get(source_name)
    if channels and source_type in channels:
        channels[source_type] = [
            [edge for edge in edges if edge.node != target_name]
            for edges in channels[source_type]
        ]
        if not any(channels[source_type]):
            del channels[source_type]

    if source_name in connections and not connections[source_name]:
        del connections[source_name]

    return connections


def remove_node_connections(node_name: str, connections: Connections) -> Connections:
    """Drop every edge that starts or ends at ``node_name``."""
    connections = _parse(connections)
    remaining = {
        source: channels for source, channels in connections.items() if source != node_name
    }
    stripped: Connections = {
        source: {
            channel: [[edge for edge in edges if edge.node != node_name] for edges in slots]
            for channel, slots in channels.items()
        }
        for source, channels in remaining.items()
    }
    return _prune(stripped)


def rename_node(workflow: Workflow, old_name: str, new_name: str) -> Workflow:
    """Rename a node and rewrite every connection that refers to it.

    ``new_name`` is made unique against the other nodes first, so the result
    may carry a numeric suffix. Unknown ``old_name`` returns ``workflow``.
    """
    node = workflow.get_node(old_name)
    if node is None:
        return workflow

    others = [name for name in workflow.node_names() if name != old_name]
    final_name = generate_unique_name(new_name, others)
    if final_name == old_name:
        return workflow

    connections: Connections = {}
    for source, channels in workflow.connections.items():
        connections[final_name if source == old_name else source] = {
            channel: [
                [
                    edge.model_copy(update={"node": final_name}) if edge.node == old_name else edge
                    for edge in edges
                ]
                for edges in slots
            ]
            for channel, slots in channels.items()
        }

    nodes = [
        n.model_copy(update={"name": final_name}) if n.name == old_name else n
        for n in workflow.nodes
    ]
    logger.debug(f"Renamed node '{old_name}' to '{final_name}'")
    return workflow.model_copy(update={"nodes": nodes, "connections": connections})


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def predecessors_of(node_name: str, connections: Connections) -> list[str]:
    """Names of nodes with at least one edge into ``node_name``, in discovery order."""
    connections = _parse(connections)
    predecessors: list[str] = []
    for source, channels in connections.items():
        if source in predecessors:
            continue
        if any(
            edge.node == node_name
            for slots in channels.values()
            for edges in slots
            for edge in edges
        ):
            predecessors.append(source)
    return predecessors


def successors_of(node_name: str, connections: Connections) -> list[str]:
    """Names of nodes ``node_name`` has an edge into, in discovery order."""
    connections = _parse(connections)
    successors: list[str] = []
    for slots in connections.get(node_name, {}).values():
        for edges in slots:
            for edge in edges:
                if edge.node not in successors:
                    successors.append(edge.node)
    return successors


def incoming_connection_count(
    node_name: str,
    connections: Connections,
    target_type: str = MAIN_CONNECTION,
    target_index: int = 0,
) -> int:
    """How many edges currently end at one input port of ``node_name``."""
    connections = _parse(connections)
    return sum(
        1
        for channels in connections.values()
        for slots in channels.values()
        for edges in slots
        for edge in edges
        if edge.node == node_name and edge.type == target_type and edge.index == target_index
    )


# ---------------------------------------------------------------------------
# Capacity-checked insertion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapacityExceeded:
    """Returned instead of an aggregate when a target port is already full."""

    target: str
    target_type: str
    target_index: int
    max_connections: int
    current: int

    def __str__(self) -> str:
        return (
            f"Input {self.target_type}[{self.target_index}] of '{self.target}' "
            f"already has {self.current}/{self.max_connections} connections"
        )


def build_connection_checked(
    source_name: str,
    target_name: str,
    source_type: str = MAIN_CONNECTION,
    target_type: str = MAIN_CONNECTION,
    source_index: int = 0,
    target_index: int = 0,
    existing_connections: Connections | None = None,
    target_port: Port | None = None,
) -> Connections | CapacityExceeded:
    """``build_connection`` that first honours ``target_port.max_connections``.

    Re-adding an edge that already exists is always allowed, since it does
    not change the port's in-degree.
    """
    existing_connections = _parse(existing_connections)
    limit = target_port.max_connections if target_port else None

    if limit is not None:
        already_there = Edge(node=target_name, type=target_type, index=target_index) in (
            _slot(existing_connections, source_name, source_type, source_index)
        )
        current = incoming_connection_count(
            target_name, existing_connections, target_type, target_index
        )
        if not already_there and current >= limit:
            rejected = CapacityExceeded(
                target=target_name,
                target_type=target_type,
                target_index=target_index,
                max_connections=limit,
                current=current,
            )
            logger.info(f"Connection rejected: {rejected}")
            return rejected

    return build_connection(
        source_name,
        target_name,
        source_type,
        target_type,
        source_index,
        target_index,
        existing_connections,
    )


def _slot(connections: Connections, source: str, channel: str, index: int) -> list[Edge]:
    slots = connections.get(source, {}).get(channel, [])
    return slots[index] if index < len(slots) else []
