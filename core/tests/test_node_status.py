"""Tests for node status resolution."""

import pytest

from flowcanvas.graph.model import Node
from flowcanvas.graph.status import (
    NodeExecutionPhase,
    NodeSignals,
    NodeStatus,
    describe_node_status,
    resolve_node_status,
    signals_for_node,
)
from flowcanvas.runtime.execution import ExecutionPhase, ExecutionStatus

# One signal set per rule, ordered from highest to lowest precedence
RULES = [
    (NodeStatus.WAITING, {"execution_waiting": "Until 10:00"}),
    (NodeStatus.UNINSTALLED_TYPE, {"is_uninstalled_type": True}),
    (NodeStatus.RUNNING, {"is_executing": True}),
    (NodeStatus.DISABLED, {"disabled": True}),
    (NodeStatus.EXECUTION_ERROR, {"execution_errors": ["boom"]}),
    (NodeStatus.VALIDATION_ERROR, {"validation_errors": ["missing url"]}),
    (NodeStatus.UNKNOWN, {"execution_phase": NodeExecutionPhase.UNKNOWN}),
    (NodeStatus.PINNED, {"has_pinned_data": True}),
    (NodeStatus.DIRTY, {"is_dirty": True}),
    (NodeStatus.SUCCESS, {"execution_phase": NodeExecutionPhase.SUCCESS}),
]


class TestResolveNodeStatus:
    def test_default_is_none(self):
        assert resolve_node_status(NodeSignals()) == NodeStatus.NONE

    @pytest.mark.parametrize("status,signals", RULES)
    def test_each_rule_alone(self, status, signals):
        assert resolve_node_status(NodeSignals(**signals)) == status

    @pytest.mark.parametrize("position", range(len(RULES)))
    def test_earlier_rule_beats_every_later_rule(self, position):
        status, _ = RULES[position]
        merged: dict = {}
        for _, signals in RULES[position:]:
            merged.update(signals)
        # execution_phase is shared by two rules; keep the higher one
        for _, signals in RULES[position:]:
            if "execution_phase" in signals:
                merged["execution_phase"] = signals["execution_phase"]
                break
        assert resolve_node_status(NodeSignals(**merged)) == status

    def test_disabled_beats_execution_errors(self):
        signals = NodeSignals(disabled=True, has_execution_errors=True, execution_errors=["boom"])
        assert resolve_node_status(signals) == NodeStatus.DISABLED

    def test_waiting_phase_counts_as_waiting(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.WAITING)
        assert resolve_node_status(signals) == NodeStatus.WAITING

    def test_running_phase_counts_as_running(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.RUNNING, disabled=True)
        assert resolve_node_status(signals) == NodeStatus.RUNNING

    def test_hidden_issues_fall_through(self):
        signals = NodeSignals(
            has_execution_errors=True,
            has_validation_errors=True,
            hide_issues=True,
            is_dirty=True,
        )
        assert resolve_node_status(signals) == NodeStatus.DIRTY

    def test_success_needs_run_data(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.SUCCESS, has_run_data=False)
        assert resolve_node_status(signals) == NodeStatus.NONE

    def test_error_phase_without_messages_is_none(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.ERROR)
        assert resolve_node_status(signals) == NodeStatus.NONE


class TestDescribeNodeStatus:
    def test_unknown_is_hidden(self):
        badge = describe_node_status(NodeSignals(execution_phase=NodeExecutionPhase.UNKNOWN))
        assert badge.status == NodeStatus.UNKNOWN
        assert badge.visible is False

    def test_none_is_hidden(self):
        assert describe_node_status(NodeSignals()).visible is False

    def test_error_tooltip_joins_messages(self):
        badge = describe_node_status(NodeSignals(execution_errors=["a", "b"]))
        assert badge.visible is True
        assert badge.tooltip == "a, b"

    def test_validation_tooltip(self):
        badge = describe_node_status(NodeSignals(validation_errors=["missing url"]))
        assert badge.tooltip == "missing url"

    def test_waiting_tooltip(self):
        badge = describe_node_status(NodeSignals(execution_waiting="Until 10:00"))
        assert badge.tooltip == "Until 10:00"

    def test_iterations_shown_on_success(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.SUCCESS, run_data_iterations=3)
        assert describe_node_status(signals).iterations == 3

    def test_single_iteration_not_shown(self):
        signals = NodeSignals(execution_phase=NodeExecutionPhase.SUCCESS)
        assert describe_node_status(signals).iterations is None

    def test_iterations_not_shown_on_pinned(self):
        signals = NodeSignals(has_pinned_data=True, run_data_iterations=3)
        assert describe_node_status(signals).iterations is None


def _execution(status: ExecutionPhase, data: object, finished: bool = True) -> ExecutionStatus:
    return ExecutionStatus(id="1", status=status, finished=finished, data=data)


class TestSignalsForNode:
    node = Node(id="n1", name="Fetch", type="engine.httpRequest")

    def test_no_execution(self):
        signals = signals_for_node(self.node)
        assert signals.execution_phase == NodeExecutionPhase.NONE
        assert signals.has_run_data is False
        assert resolve_node_status(signals) == NodeStatus.NONE

    def test_successful_runs(self):
        execution = _execution(
            ExecutionPhase.SUCCESS,
            {"resultData": {"runData": {"Fetch": [{"executionStatus": "success"}] * 2}}},
        )
        signals = signals_for_node(self.node, execution)
        badge = describe_node_status(signals)
        assert badge.status == NodeStatus.SUCCESS
        assert badge.iterations == 2

    def test_failed_run(self):
        execution = _execution(
            ExecutionPhase.ERROR,
            {"resultData": {"runData": {"Fetch": [{"error": {"message": "timeout"}}]}}},
        )
        signals = signals_for_node(self.node, execution)
        assert signals.execution_phase == NodeExecutionPhase.ERROR
        assert describe_node_status(signals).tooltip == "timeout"

    def test_node_on_top_of_stack_is_running(self):
        execution = _execution(
            ExecutionPhase.RUNNING,
            {"executionData": {"nodeExecutionStack": [{"node": {"name": "Fetch"}}]}},
            finished=False,
        )
        assert resolve_node_status(signals_for_node(self.node, execution)) == NodeStatus.RUNNING

    def test_waiting_execution_parks_last_node(self):
        execution = _execution(
            ExecutionPhase.WAITING,
            {"resultData": {"lastNodeExecuted": "Fetch", "runData": {}}},
            finished=False,
        )
        assert resolve_node_status(signals_for_node(self.node, execution)) == NodeStatus.WAITING

    def test_unexpected_payload_shape_reads_as_no_run(self):
        execution = _execution(ExecutionPhase.RUNNING, ["unexpected"], finished=False)
        signals = signals_for_node(self.node, execution)
        assert signals.has_run_data is False
        assert resolve_node_status(signals) == NodeStatus.NONE

    def test_uninstalled_type(self):
        signals = signals_for_node(self.node, installed_types={"engine.set"})
        assert resolve_node_status(signals) == NodeStatus.UNINSTALLED_TYPE

    def test_pinned_and_validation_passthrough(self):
        signals = signals_for_node(self.node, has_pinned_data=True, validation_errors=["bad"])
        assert resolve_node_status(signals) == NodeStatus.VALIDATION_ERROR
        hidden = signals_for_node(
            self.node, has_pinned_data=True, validation_errors=["bad"], hide_issues=True
        )
        assert resolve_node_status(hidden) == NodeStatus.PINNED

    def test_disabled_node_with_errors(self):
        node = self.node.model_copy(update={"disabled": True})
        execution = _execution(
            ExecutionPhase.ERROR,
            {"resultData": {"runData": {"Fetch": [{"error": {"message": "timeout"}}]}}},
        )
        assert resolve_node_status(signals_for_node(node, execution)) == NodeStatus.DISABLED
