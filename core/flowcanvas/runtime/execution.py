"""
Execution records and the public execution status shape.

``ExecutionRecord`` mirrors what the engine returns for one execution;
``ExecutionStatus`` is what polling observers receive. Translation fills in
a derived ``duration_ms`` and folds unfamiliar engine statuses into
``unknown`` so observers only ever see the six known phases.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator


class ExecutionPhase(StrEnum):
    """Lifecycle status of one workflow execution."""

    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"
    WAITING = "waiting"  # Parked until an external trigger resumes it
    CANCELED = "canceled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "ExecutionPhase":
        if raw is None:
            return cls.UNKNOWN
        raw = raw.lower()
        if raw in _PHASE_ALIASES:
            return _PHASE_ALIASES[raw]
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


_PHASE_ALIASES = {
    "crashed": ExecutionPhase.ERROR,
    "failed": ExecutionPhase.ERROR,
    "new": ExecutionPhase.RUNNING,
    "cancelled": ExecutionPhase.CANCELED,
}


class ExecutionRecord(BaseModel):
    """An execution as returned by the engine's execution query."""

    id: str
    finished: bool = False
    mode: str | None = None
    status: str | None = None
    started_at: datetime | None = Field(default=None, alias="startedAt")
    stopped_at: datetime | None = Field(default=None, alias="stoppedAt")
    workflow_id: str | None = Field(default=None, alias="workflowId")
    data: Any = None
    not_found: bool = Field(default=False, alias="notFound")

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("id", "workflow_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    def phase(self) -> ExecutionPhase:
        """Resolve the phase, inferring it for engines that omit ``status``."""
        if self.status is not None:
            return ExecutionPhase.parse(self.status)
        if not self.finished and self.stopped_at is None:
            return ExecutionPhase.RUNNING
        return ExecutionPhase.SUCCESS if self.finished else ExecutionPhase.ERROR


def _as_utc(moment: datetime) -> datetime:
    # Engines mix offset-aware and naive timestamps; naive ones are UTC
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


@dataclass
class NodeRunInfo:
    """What one execution payload says about a single node."""

    iterations: int = 0
    last_status: str | None = None  # "success" | "error" from the last run
    errors: list[str] = field(default_factory=list)
    executing: bool = False
    waiting: bool = False


class ExecutionStatus(BaseModel):
    """Status update delivered to polling observers."""

    id: str
    status: ExecutionPhase
    finished: bool
    started_at: datetime | None = None
    stopped_at: datetime | None = None
    duration_ms: int | None = None
    data: Any = None
    error: Any = None
    sequence: int = 0  # Per-session tick number, increasing

    @classmethod
    def from_record(cls, record: ExecutionRecord, sequence: int = 0) -> "ExecutionStatus":
        phase = record.phase()
        duration_ms = None
        if record.started_at is not None and record.stopped_at is not None:
            elapsed = _as_utc(record.stopped_at) - _as_utc(record.started_at)
            duration_ms = int(elapsed.total_seconds() * 1000)
        return cls(
            id=record.id,
            status=phase,
            finished=record.finished,
            started_at=record.started_at,
            stopped_at=record.stopped_at,
            duration_ms=duration_ms,
            data=record.data,
            error=record.data if phase == ExecutionPhase.ERROR else None,
            sequence=sequence,
        )

    def _result_data(self) -> dict[str, Any]:
        if not isinstance(self.data, dict):
            return {}
        result = self.data.get("resultData")
        return result if isinstance(result, dict) else {}

    def node_run(self, node_name: str) -> NodeRunInfo:
        """Extract per-node run data from the engine payload.

        Reads ``resultData.runData[node_name]`` for iterations and errors,
        ``executionData.nodeExecutionStack`` for the node about to run, and
        ``resultData.lastNodeExecuted`` for the node a waiting run is parked on.
        """
        result = self._result_data()
        run_data = result.get("runData")
        runs = run_data.get(node_name) if isinstance(run_data, dict) else None
        if not isinstance(runs, list):
            runs = []

        info = NodeRunInfo(iterations=len(runs))
        for run in runs:
            error = run.get("error") if isinstance(run, dict) else None
            if error:
                message = error.get("message") if isinstance(error, dict) else None
                info.errors.append(message or str(error))
        if runs and isinstance(runs[-1], dict):
            last = runs[-1]
            fallback = "error" if last.get("error") else "success"
            info.last_status = last.get("executionStatus") or fallback

        if not self.finished and self.status == ExecutionPhase.RUNNING:
            if _stack_head(self.data) == node_name:
                info.executing = True

        if self.status == ExecutionPhase.WAITING and result.get("lastNodeExecuted") == node_name:
            info.waiting = True

        return info


def _stack_head(data: Any) -> str | None:
    """Name of the node on top of ``executionData.nodeExecutionStack``, if any."""
    if not isinstance(data, dict):
        return None
    execution_data = data.get("executionData")
    if not isinstance(execution_data, dict):
        return None
    stack = execution_data.get("nodeExecutionStack")
    if not isinstance(stack, list) or not stack or not isinstance(stack[0], dict):
        return None
    node = stack[0].get("node")
    return node.get("name") if isinstance(node, dict) else None


@runtime_checkable
class ExecutionFetcher(Protocol):
    """The execution-query collaborator polled by ``PollingManager``.

    Implementations either raise ``ExecutionNotFoundError`` or return a
    record with ``not_found=True`` when the execution no longer exists.
    """

    async def fetch_execution(self, execution_id: str) -> ExecutionRecord: ...
