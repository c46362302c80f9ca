"""Exceptions raised at the boundary with the workflow engine."""


class FlowCanvasError(Exception):
    """Base class for flowcanvas errors."""

    pass


class ExecutionNotFoundError(FlowCanvasError):
    """Raised when the engine no longer has a record for an execution."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution {execution_id!r} not found")


class EngineAPIError(FlowCanvasError):
    """Raised when the engine answers with an unexpected HTTP status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Engine API error (HTTP {status_code}): {message}")
