"""Execution tracking: status records and the polling manager."""

from flowcanvas.runtime.execution import (
    ExecutionFetcher,
    ExecutionPhase,
    ExecutionRecord,
    ExecutionStatus,
    NodeRunInfo,
)
from flowcanvas.runtime.poller import PollingManager, PollingSession, SessionState

__all__ = [
    "ExecutionFetcher",
    "ExecutionPhase",
    "ExecutionRecord",
    "ExecutionStatus",
    "NodeRunInfo",
    "PollingManager",
    "PollingSession",
    "SessionState",
]
