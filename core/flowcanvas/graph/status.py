"""
Node Status Resolver - one display status per node per render pass.

A node can satisfy several conditions at once (disabled *and* erroring,
pinned *and* dirty). The resolver applies a fixed precedence and the first
matching rule wins:

    1. waiting            engine parked the node on an external trigger
    2. uninstalled-type   node type missing from the catalog
    3. running            node is executing right now
    4. disabled           user switched the node off
    5. execution-error    last run produced errors
    6. validation-error   static validation fails
    7. unknown            engine reports an indeterminate outcome (no badge)
    8. pinned             output data is pinned
    9. dirty              inputs changed since the last successful run
   10. success            last run succeeded
   11. none               nothing to show

Disabling suppresses execution, so a disabled node that still carries old
errors reads as ``disabled``.
"""

from collections.abc import Container
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field

from flowcanvas.graph.model import Node
from flowcanvas.runtime.execution import ExecutionPhase, ExecutionStatus


class NodeStatus(StrEnum):
    """Display status of a node on the canvas."""

    WAITING = "waiting"
    UNINSTALLED_TYPE = "uninstalled-type"
    RUNNING = "running"
    DISABLED = "disabled"
    EXECUTION_ERROR = "execution-error"
    VALIDATION_ERROR = "validation-error"
    UNKNOWN = "unknown"
    PINNED = "pinned"
    DIRTY = "dirty"
    SUCCESS = "success"
    NONE = "none"


class NodeExecutionPhase(StrEnum):
    """Live execution phase of a single node."""

    WAITING = "waiting"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    UNKNOWN = "unknown"
    NONE = "none"


class NodeSignals(BaseModel):
    """Raw inputs the resolver chooses a status from."""

    disabled: bool = False
    has_pinned_data: bool = False
    execution_phase: NodeExecutionPhase = NodeExecutionPhase.NONE
    execution_waiting: str | None = Field(
        default=None, description="Why the node is waiting, e.g. a resume time"
    )
    is_executing: bool = False
    has_execution_errors: bool = False
    execution_errors: list[str] = Field(default_factory=list)
    has_validation_errors: bool = False
    validation_errors: list[str] = Field(default_factory=list)
    hide_issues: bool = False
    is_dirty: bool = False
    is_uninstalled_type: bool = False
    has_run_data: bool = True
    run_data_iterations: int = 1

    @property
    def shows_execution_errors(self) -> bool:
        return (self.has_execution_errors or bool(self.execution_errors)) and not self.hide_issues

    @property
    def shows_validation_errors(self) -> bool:
        return (self.has_validation_errors or bool(self.validation_errors)) and not self.hide_issues


def resolve_node_status(signals: NodeSignals) -> NodeStatus:
    """Pick the single status to display for a node."""
    phase = signals.execution_phase

    if signals.execution_waiting or phase == NodeExecutionPhase.WAITING:
        return NodeStatus.WAITING
    if signals.is_uninstalled_type:
        return NodeStatus.UNINSTALLED_TYPE
    if signals.is_executing or phase == NodeExecutionPhase.RUNNING:
        return NodeStatus.RUNNING
    if signals.disabled:
        return NodeStatus.DISABLED
    if signals.shows_execution_errors:
        return NodeStatus.EXECUTION_ERROR
    if signals.shows_validation_errors:
        return NodeStatus.VALIDATION_ERROR
    if phase == NodeExecutionPhase.UNKNOWN:
        return NodeStatus.UNKNOWN
    if signals.has_pinned_data:
        return NodeStatus.PINNED
    if signals.is_dirty:
        return NodeStatus.DIRTY
    if signals.has_run_data and phase == NodeExecutionPhase.SUCCESS:
        return NodeStatus.SUCCESS
    return NodeStatus.NONE


@dataclass(frozen=True)
class StatusBadge:
    """Render-ready view of a resolved status."""

    status: NodeStatus
    visible: bool
    tooltip: str | None = None
    iterations: int | None = None  # Shown next to dirty/success badges when > 1


_HIDDEN = {NodeStatus.UNKNOWN, NodeStatus.NONE}


def describe_node_status(signals: NodeSignals) -> StatusBadge:
    """Resolve the status and attach the text a badge needs."""
    status = resolve_node_status(signals)

    tooltip = None
    if status == NodeStatus.EXECUTION_ERROR:
        tooltip = ", ".join(signals.execution_errors) or None
    elif status == NodeStatus.VALIDATION_ERROR:
        tooltip = ", ".join(signals.validation_errors) or None
    elif status == NodeStatus.WAITING:
        tooltip = signals.execution_waiting
    elif status == NodeStatus.UNINSTALLED_TYPE:
        tooltip = "Node type is not installed"

    iterations = None
    if status in (NodeStatus.DIRTY, NodeStatus.SUCCESS) and signals.run_data_iterations > 1:
        iterations = signals.run_data_iterations

    return StatusBadge(
        status=status,
        visible=status not in _HIDDEN,
        tooltip=tooltip,
        iterations=iterations,
    )


def signals_for_node(
    node: Node,
    execution: ExecutionStatus | None = None,
    *,
    installed_types: Container[str] | None = None,
    has_pinned_data: bool = False,
    validation_errors: list[str] | None = None,
    is_dirty: bool = False,
    hide_issues: bool = False,
) -> NodeSignals:
    """Merge a graph node with the latest polled execution status.

    ``installed_types`` is anything supporting ``in`` over type names, such
    as a ``NodeTypeCatalog``; when omitted every type counts as installed.
    """
    phase = NodeExecutionPhase.NONE
    waiting = None
    executing = False
    errors: list[str] = []
    iterations = 0

    if execution is not None:
        run = execution.node_run(node.name)
        iterations = run.iterations
        errors = run.errors
        executing = run.executing
        if run.waiting:
            phase = NodeExecutionPhase.WAITING
            waiting = "Waiting for an external trigger"
        elif run.executing:
            phase = NodeExecutionPhase.RUNNING
        elif run.last_status == "error":
            phase = NodeExecutionPhase.ERROR
        elif run.last_status == "success":
            phase = NodeExecutionPhase.SUCCESS
        elif execution.status == ExecutionPhase.UNKNOWN and iterations:
            phase = NodeExecutionPhase.UNKNOWN

    return NodeSignals(
        disabled=node.disabled,
        has_pinned_data=has_pinned_data,
        execution_phase=phase,
        execution_waiting=waiting,
        is_executing=executing,
        has_execution_errors=bool(errors),
        execution_errors=errors,
        has_validation_errors=bool(validation_errors),
        validation_errors=validation_errors or [],
        hide_issues=hide_issues,
        is_dirty=is_dirty,
        is_uninstalled_type=installed_types is not None and node.type not in installed_types,
        has_run_data=iterations > 0,
        run_data_iterations=max(iterations, 1),
    )
