"""flowcanvas - workflow graph model and execution tracking for an engine editor."""

from flowcanvas.catalog import NodeTypeCatalog
from flowcanvas.client import EngineClient
from flowcanvas.config import EngineConfig
from flowcanvas.errors import EngineAPIError, ExecutionNotFoundError, FlowCanvasError
from flowcanvas.runtime import ExecutionStatus, PollingManager

__all__ = [
    "EngineAPIError",
    "EngineClient",
    "EngineConfig",
    "ExecutionNotFoundError",
    "ExecutionStatus",
    "FlowCanvasError",
    "NodeTypeCatalog",
    "PollingManager",
]
