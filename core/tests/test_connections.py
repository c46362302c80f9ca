"""Tests for connection transforms and graph traversal."""

import copy

import pytest
from pydantic import ValidationError

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
from flowcanvas.graph.model import Edge, Node, Port, Workflow


def _chain(*pairs: tuple[str, str]):
    connections: dict = {}
    for source, target in pairs:
        connections = build_connection(source, target, existing_connections=connections)
    return connections


# ---------------------------------------------------------------------------
# build_connection
# ---------------------------------------------------------------------------


class TestBuildConnection:
    def test_builds_nested_structure(self):
        result = build_connection("A", "B", "main", "main", 0, 0, {})
        assert result == {"A": {"main": [[Edge(node="B", type="main", index=0)]]}}

    def test_pads_source_slots(self):
        result = build_connection("If", "B", "main", "main", 2, 0, {})
        assert result["If"]["main"][:2] == [[], []]
        assert result["If"]["main"][2] == [Edge(node="B")]

    def test_does_not_mutate_input(self):
        existing = build_connection("A", "B", existing_connections={})
        snapshot = copy.deepcopy(existing)
        build_connection("A", "C", existing_connections=existing)
        build_connection("A", "D", "main", "main", 3, 0, existing)
        assert existing == snapshot

    def test_is_idempotent(self):
        once = build_connection("A", "B", "main", "main", 0, 1, {})
        twice = build_connection("A", "B", "main", "main", 0, 1, once)
        assert twice == once

    def test_same_target_other_port_is_a_new_edge(self):
        result = build_connection("A", "Merge", "main", "main", 0, 0, {})
        result = build_connection("A", "Merge", "main", "main", 0, 1, result)
        assert result["A"]["main"][0] == [Edge(node="Merge", index=0), Edge(node="Merge", index=1)]

    def test_side_channel_is_separate(self):
        result = build_connection("Model", "Agent", "ai_languageModel", "ai_languageModel", 0, 0)
        assert result == {
            "Model": {"ai_languageModel": [[Edge(node="Agent", type="ai_languageModel")]]}
        }

    def test_max_connections_is_not_enforced(self):
        # Capacity is the caller's job; see build_connection_checked
        result = _chain(("A", "Target"), ("B", "Target"), ("C", "Target"))
        assert incoming_connection_count("Target", result) == 3


# ---------------------------------------------------------------------------
# remove_connection
# ---------------------------------------------------------------------------


class TestRemoveConnection:
    def test_build_then_remove_leaves_empty_aggregate(self):
        built = build_connection("A", "B", "main", "main", 0, 0, {})
        assert remove_connection("A", "B", "main", built) == {}

    def test_removes_every_target_port(self):
        result = build_connection("A", "Merge", "main", "main", 0, 0, {})
        result = build_connection("A", "Merge", "main", "main", 0, 1, result)
        result = build_connection("A", "Merge", "main", "main", 1, 0, result)
        assert remove_connection("A", "Merge", "main", result) == {}

    def test_keeps_other_targets(self):
        result = _chain(("A", "B"), ("A", "C"))
        removed = remove_connection("A", "B", "main", result)
        assert removed == {"A": {"main": [[Edge(node="C")]]}}
        assert "A" in predecessors_of("C", removed)

    def test_keeps_other_channels(self):
        result = build_connection("A", "B", existing_connections={})
        result = build_connection("A", "Tool", "ai_tool", "ai_tool", 0, 0, result)
        removed = remove_connection("A", "B", "main", result)
        assert removed == {"A": {"ai_tool": [[Edge(node="Tool", type="ai_tool")]]}}

    def test_missing_source_or_channel_is_a_no_op(self):
        result = _chain(("A", "B"))
        assert remove_connection("X", "B", "main", result) == result
        assert remove_connection("A", "B", "ai_tool", result) == result
        assert remove_connection("A", "B", "main", {}) == {}

    def test_does_not_mutate_input(self):
        result = _chain(("A", "B"), ("A", "C"))
        snapshot = copy.deepcopy(result)
        remove_connection("A", "B", "main", result)
        assert result == snapshot

    def test_removal_is_complete(self):
        result = _chain(("A", "B"), ("C", "B"))
        removed = remove_connection("A", "B", "main", result)
        assert "A" not in predecessors_of("B", removed)
        assert "A" not in removed
        assert predecessors_of("B", removed) == ["C"]


class TestRemoveNodeConnections:
    def test_drops_inbound_and_outbound(self):
        result = _chain(("A", "B"), ("B", "C"), ("A", "C"))
        stripped = remove_node_connections("B", result)
        assert stripped == {"A": {"main": [[Edge(node="C")]]}}

    def test_prunes_sources_left_empty(self):
        result = _chain(("A", "B"))
        assert remove_node_connections("B", result) == {}

    def test_unknown_node_keeps_aggregate(self):
        result = _chain(("A", "B"))
        assert remove_node_connections("Z", result) == result


# ---------------------------------------------------------------------------
# Aggregates in the persisted JSON shape
# ---------------------------------------------------------------------------

WIRE_AGGREGATE = {
    "A": {"main": [[{"node": "B", "type": "main", "index": 0}], None]},
    "B": {"main": [[{"node": "C", "type": "main", "index": 0}]]},
}


class TestWireShapedAggregates:
    def test_build_is_idempotent_on_wire_edges(self):
        result = build_connection("A", "B", "main", "main", 0, 0, WIRE_AGGREGATE)
        assert result["A"]["main"][0] == [Edge(node="B")]
        assert all(isinstance(edge, Edge) for slot in result["A"]["main"] for edge in slot)

    def test_build_adds_next_to_wire_edges(self):
        result = build_connection("A", "C", "main", "main", 0, 0, WIRE_AGGREGATE)
        assert result["A"]["main"][0] == [Edge(node="B"), Edge(node="C")]
        assert result["A"]["main"][1] == []

    def test_remove_from_wire_edges(self):
        result = remove_connection("A", "B", "main", WIRE_AGGREGATE)
        assert result == {"B": {"main": [[Edge(node="C")]]}}

    def test_traversal_over_wire_edges(self):
        assert predecessors_of("B", WIRE_AGGREGATE) == ["A"]
        assert successors_of("B", WIRE_AGGREGATE) == ["C"]
        assert incoming_connection_count("C", WIRE_AGGREGATE) == 1

    def test_remove_node_connections_on_wire_edges(self):
        assert remove_node_connections("B", WIRE_AGGREGATE) == {}

    def test_checked_build_counts_wire_edges(self):
        port = Port(type="main", max_connections=1)
        result = build_connection_checked(
            "X", "B", existing_connections=WIRE_AGGREGATE, target_port=port
        )
        assert isinstance(result, CapacityExceeded)
        assert result.current == 1

    def test_wire_input_is_not_mutated(self):
        snapshot = copy.deepcopy(WIRE_AGGREGATE)
        build_connection("A", "D", "main", "main", 2, 0, WIRE_AGGREGATE)
        remove_connection("A", "B", "main", WIRE_AGGREGATE)
        assert WIRE_AGGREGATE == snapshot


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class TestTraversal:
    def test_predecessors(self):
        result = _chain(("A", "C"), ("B", "C"), ("C", "D"))
        assert sorted(predecessors_of("C", result)) == ["A", "B"]
        assert predecessors_of("A", result) == []

    def test_predecessors_scan_all_slots(self):
        result = build_connection("If", "Done", "main", "main", 1, 0, {})
        assert predecessors_of("Done", result) == ["If"]

    def test_successors_are_unique(self):
        result = build_connection("A", "Merge", "main", "main", 0, 0, {})
        result = build_connection("A", "Merge", "main", "main", 1, 1, result)
        result = build_connection("A", "Tool", "ai_tool", "ai_tool", 0, 0, result)
        assert sorted(successors_of("A", result)) == ["Merge", "Tool"]

    def test_unknown_node_has_no_neighbours(self):
        assert successors_of("Nope", {}) == []
        assert predecessors_of("Nope", {}) == []

    @pytest.mark.parametrize(
        "pairs",
        [
            [("A", "B")],
            [("A", "B"), ("B", "C"), ("C", "A")],
            [("A", "B"), ("A", "C"), ("D", "C"), ("C", "C")],
        ],
    )
    def test_successors_and_predecessors_agree(self, pairs):
        result = _chain(*pairs)
        names = {name for pair in pairs for name in pair}
        for a in names:
            for b in names:
                assert (b in successors_of(a, result)) == (a in predecessors_of(b, result))

    def test_malformed_aggregate_raises_validation_error(self):
        with pytest.raises(ValidationError):
            predecessors_of("B", {"A": {"main": [5]}})


# ---------------------------------------------------------------------------
# rename_node
# ---------------------------------------------------------------------------


class TestRenameNode:
    def _workflow(self) -> Workflow:
        return Workflow(
            nodes=[
                Node(id="1", name="A", type="t"),
                Node(id="2", name="B", type="t"),
                Node(id="3", name="C", type="t"),
            ],
            connections=_chain(("A", "B"), ("B", "C")),
        )

    def test_rewrites_keys_and_targets(self):
        renamed = rename_node(self._workflow(), "B", "Transform")
        assert renamed.node_names() == ["A", "Transform", "C"]
        assert successors_of("A", renamed.connections) == ["Transform"]
        assert successors_of("Transform", renamed.connections) == ["C"]
        assert "B" not in renamed.connections

    def test_new_name_is_made_unique(self):
        renamed = rename_node(self._workflow(), "B", "C")
        assert renamed.node_names() == ["A", "C1", "C"]

    def test_unknown_node_returns_workflow(self):
        wf = self._workflow()
        assert rename_node(wf, "Nope", "X") is wf

    def test_original_is_untouched(self):
        wf = self._workflow()
        rename_node(wf, "B", "Transform")
        assert wf.node_names() == ["A", "B", "C"]
        assert successors_of("A", wf.connections) == ["B"]


# ---------------------------------------------------------------------------
# Capacity-checked insertion
# ---------------------------------------------------------------------------


class TestBuildConnectionChecked:
    def test_rejects_when_port_is_full(self):
        port = Port(type="main", index=0, max_connections=1)
        existing = _chain(("A", "Target"))
        result = build_connection_checked(
            "B", "Target", existing_connections=existing, target_port=port
        )
        assert isinstance(result, CapacityExceeded)
        assert result.current == 1
        assert result.max_connections == 1
        assert "Target" in str(result)

    def test_allows_below_limit(self):
        port = Port(type="main", max_connections=2)
        existing = _chain(("A", "Target"))
        result = build_connection_checked(
            "B", "Target", existing_connections=existing, target_port=port
        )
        assert not isinstance(result, CapacityExceeded)
        assert incoming_connection_count("Target", result) == 2

    def test_existing_edge_is_not_rejected(self):
        port = Port(type="main", max_connections=1)
        existing = _chain(("A", "Target"))
        result = build_connection_checked(
            "A", "Target", existing_connections=existing, target_port=port
        )
        assert result == existing

    def test_other_port_is_counted_separately(self):
        port = Port(type="main", index=1, max_connections=1)
        existing = _chain(("A", "Merge"))
        result = build_connection_checked(
            "B", "Merge", "main", "main", 0, 1, existing, target_port=port
        )
        assert not isinstance(result, CapacityExceeded)

    def test_no_port_means_no_limit(self):
        existing = _chain(("A", "Target"))
        result = build_connection_checked("B", "Target", existing_connections=existing)
        assert sorted(predecessors_of("Target", result)) == ["A", "B"]
