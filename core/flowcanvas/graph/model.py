"""
Workflow Graph Model - nodes, ports, and connections.

These are the serializable structures exchanged with the workflow engine.
Connections use the engine's persisted shape::

    connections[source_name][connection_type][source_index] = [
        {"node": target_name, "type": target_type, "index": target_index},
        ...
    ]

The model itself is read-only from the caller's point of view: queries
return empty results for absent nodes, and mutation goes through the
pure transforms in ``flowcanvas.graph.connections`` and
``flowcanvas.graph.naming``.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, Field, TypeAdapter, field_validator

MAIN_CONNECTION = "main"


class Port(BaseModel):
    """One declared input or output slot on a node type."""

    connection_type: str = Field(default=MAIN_CONNECTION, alias="type")
    index: int = Field(default=0, ge=0, description="Ordinal among ports of the same type")
    required: bool = False
    max_connections: int | None = Field(default=None, alias="maxConnections")
    label: str | None = None

    # Layout hints, carried through untouched
    position: str | None = None
    offset: dict[str, str] | None = None

    model_config = {"populate_by_name": True}


class Edge(BaseModel):
    """The target half of a connection: ``{node, type, index}``."""

    node: str
    type: str = MAIN_CONNECTION
    index: int = 0

    model_config = {"frozen": True}


def _none_to_empty(value: Any) -> Any:
    # The engine writes null for output slots that were never connected
    return [] if value is None else value


EdgeList = Annotated[list[Edge], BeforeValidator(_none_to_empty)]

# source node name -> connection type -> source port index -> edges
Connections = dict[str, dict[str, list[EdgeList]]]

_connections_adapter: TypeAdapter[Connections] = TypeAdapter(Connections)


def connections_from_wire(data: Mapping[str, Any] | None) -> Connections:
    """Parse the engine's persisted connection JSON.

    Raises:
        pydantic.ValidationError: If the payload does not have the nested shape.
    """
    return _connections_adapter.validate_python(data or {})


def connections_to_wire(connections: Connections) -> dict[str, Any]:
    """Dump a connection aggregate to plain JSON-compatible dicts."""
    return _connections_adapter.dump_python(connections, mode="json")


class Node(BaseModel):
    """A unit of work placed in a workflow.

    ``name`` is unique within the owning workflow; ``id`` is assigned once
    at creation and never reused. Engine-specific flags such as
    ``continueOnFail`` are kept as extra fields so they survive a round trip.
    """

    id: str
    name: str
    type: str
    type_version: float = Field(default=1, alias="typeVersion")
    position: tuple[float, float] = (0, 0)
    parameters: dict[str, Any] = Field(default_factory=dict)
    credentials: dict[str, Any] = Field(
        default_factory=dict, description="Credential type name -> credential reference"
    )
    disabled: bool = False

    model_config = {"populate_by_name": True, "extra": "allow"}


def _normalize_ports(value: Any) -> list[dict[str, Any]]:
    """Accept ``["main", "ai_tool"]`` or port dicts; assign per-type ordinals."""
    if not isinstance(value, list):
        # Dynamic port expressions cannot be evaluated here
        return []

    counters: dict[str, int] = {}
    ports: list[dict[str, Any]] = []
    for item in value:
        if isinstance(item, str):
            port: dict[str, Any] = {"type": item}
        elif isinstance(item, Mapping):
            port = dict(item)
        elif isinstance(item, Port):
            port = item.model_dump(by_alias=True)
        else:
            continue
        connection_type = port.get("type", MAIN_CONNECTION)
        port.setdefault("index", counters.get(connection_type, 0))
        counters[connection_type] = port["index"] + 1
        ports.append(port)
    return ports


class NodeTypeInfo(BaseModel):
    """A node type as described by the engine's catalog."""

    name: str
    display_name: str = Field(default="", alias="displayName")
    description: str = ""
    version: float = 1
    defaults: dict[str, Any] = Field(default_factory=dict)
    default_parameters: dict[str, Any] | None = Field(default=None, alias="defaultParameters")
    properties: list[dict[str, Any]] = Field(default_factory=list)
    credentials: list[dict[str, Any]] = Field(default_factory=list)
    group: list[str] = Field(default_factory=list)
    codex: dict[str, Any] | None = None
    category: list[str] | str | None = None
    inputs: list[Port] = Field(default_factory=list)
    outputs: list[Port] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("version", mode="before")
    @classmethod
    def _latest_version(cls, value: Any) -> Any:
        if isinstance(value, list):
            return max(value) if value else 1
        return 1 if value is None else value

    @field_validator("inputs", "outputs", mode="before")
    @classmethod
    def _ports(cls, value: Any) -> Any:
        return _normalize_ports(value)

    @field_validator("defaults", mode="before")
    @classmethod
    def _defaults(cls, value: Any) -> Any:
        return value or {}

    def initial_parameters(self) -> dict[str, Any]:
        """Parameters a freshly created node starts with."""
        if self.default_parameters is not None:
            return dict(self.default_parameters)
        return {p["name"]: p["default"] for p in self.properties if "name" in p and "default" in p}

    def ports(self, mode: Literal["input", "output"]) -> list[Port]:
        return list(self.inputs if mode == "input" else self.outputs)


class Workflow(BaseModel):
    """A workflow graph as persisted by the engine."""

    id: str | None = None
    name: str = "My workflow"
    active: bool = False
    nodes: list[Node] = Field(default_factory=list)
    connections: Connections = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True, "extra": "allow"}

    # ── Queries ──

    def node_names(self) -> list[str]:
        return [n.name for n in self.nodes]

    def get_node(self, name: str) -> Node | None:
        """Find a node by its unique name."""
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def get_node_by_id(self, node_id: str) -> Node | None:
        """Find a node by its stable id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, name: str) -> bool:
        return self.get_node(name) is not None

    def has_connection(
        self,
        source: str,
        target: str,
        source_type: str = MAIN_CONNECTION,
        source_index: int | None = None,
        target_index: int | None = None,
    ) -> bool:
        """Whether an edge ``source -> target`` exists on the given channel.

        ``None`` for an index matches any port on that side.
        """
        slots = self.connections.get(source, {}).get(source_type, [])
        for index, edges in enumerate(slots):
            if source_index is not None and index != source_index:
                continue
            for edge in edges:
                if edge.node == target and (target_index is None or edge.index == target_index):
                    return True
        return False

    def ports_of(
        self,
        name: str,
        node_types: Mapping[str, NodeTypeInfo],
        mode: Literal["input", "output"] = "input",
    ) -> list[Port]:
        """Ports declared for a node's type; empty when node or type is unknown."""
        node = self.get_node(name)
        if node is None:
            return []
        type_info = node_types.get(node.type)
        if type_info is None:
            return []
        return type_info.ports(mode)

    # ── Copy-on-write helpers ──

    def with_node(self, node: Node) -> "Workflow":
        """Return a copy with ``node`` appended.

        Raises:
            ValueError: If a node with the same name already exists.
        """
        if self.has_node(node.name):
            raise ValueError(f"Node name {node.name!r} is already used in this workflow")
        return self.model_copy(update={"nodes": [*self.nodes, node]})

    def without_node(self, name: str) -> "Workflow":
        """Return a copy without ``name`` and without any connection touching it."""
        from flowcanvas.graph.connections import remove_node_connections

        return self.model_copy(
            update={
                "nodes": [n for n in self.nodes if n.name != name],
                "connections": remove_node_connections(name, self.connections),
            }
        )

    def to_wire(self) -> dict[str, Any]:
        """Dump using the engine's field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
