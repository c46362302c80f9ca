"""Workflow graph: model, naming, connection transforms, and node status."""

from flowcanvas.graph.connections import (
    CapacityExceeded,
    build_connection,
    build_connection_checked,
    incoming_connection_count,
    predecessors_of,
    remove_connection,
    remove_node_connections,
    rename_node,
    successors_of,
)
from flowcanvas.graph.model import (
    MAIN_CONNECTION,
    Connections,
    Edge,
    Node,
    NodeTypeInfo,
    Port,
    Workflow,
    connections_from_wire,
    connections_to_wire,
)
from flowcanvas.graph.naming import create_node, generate_node_id, generate_unique_name
from flowcanvas.graph.status import (
    NodeExecutionPhase,
    NodeSignals,
    NodeStatus,
    StatusBadge,
    describe_node_status,
    resolve_node_status,
    signals_for_node,
)

__all__ = [
    # Model
    "MAIN_CONNECTION",
    "Connections",
    "Edge",
    "Node",
    "NodeTypeInfo",
    "Port",
    "Workflow",
    "connections_from_wire",
    "connections_to_wire",
    # Naming
    "create_node",
    "generate_node_id",
    "generate_unique_name",
    # Connections
    "CapacityExceeded",
    "build_connection",
    "build_connection_checked",
    "incoming_connection_count",
    "predecessors_of",
    "remove_connection",
    "remove_node_connections",
    "rename_node",
    "successors_of",
    # Status
    "NodeExecutionPhase",
    "NodeSignals",
    "NodeStatus",
    "StatusBadge",
    "describe_node_status",
    "resolve_node_status",
    "signals_for_node",
]
