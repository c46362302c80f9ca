"""
Execution Poller - interval-driven status tracking for running executions.

Each execution id gets at most one ``PollingSession``. A session fetches the
execution once immediately and then once per interval, hands every result to
its observer, and ends itself when the execution reports ``finished`` or
disappears from the engine.

Lifecycle of a session::

    idle ──start_polling()──▶ polling ──finished, not found, or stop_polling()──▶ stopped

Ticks are scheduled on a fixed cadence measured from the previous tick's
start, so a slow fetch can overlap the next one. Every status carries the
tick's ``sequence``; pass ``drop_stale=True`` to discard responses that
arrive after a newer tick has already been delivered.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from flowcanvas.config import EngineConfig, get_poll_interval_ms
from flowcanvas.errors import ExecutionNotFoundError
from flowcanvas.observability import set_trace_context
from flowcanvas.runtime.execution import ExecutionFetcher, ExecutionRecord, ExecutionStatus

logger = logging.getLogger(__name__)

# Observers may be plain callables or coroutine functions
UpdateHandler = Callable[[ExecutionStatus], Awaitable[None] | None]


class SessionState(StrEnum):
    """State of one polling session."""

    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass
class PollingSession:
    """The live subscription tracking one execution."""

    execution_id: str
    on_update: UpdateHandler
    interval_ms: int
    state: SessionState = SessionState.IDLE
    ticks_started: int = 0
    last_delivered: int = 0
    updates_delivered: int = 0
    _scheduler: asyncio.Task | None = field(default=None, repr=False)
    _closed: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def active(self) -> bool:
        return self.state == SessionState.POLLING

    async def wait_closed(self) -> None:
        """Wait until the session has stopped, for whatever reason."""
        await self._closed.wait()


class PollingManager:
    """
    Owns the polling sessions of one application scope (e.g. one editor).

    Example:
        async with EngineClient(config) as client:
            manager = PollingManager(client, config=client.config)

            def on_update(status: ExecutionStatus) -> None:
                print(status.status, status.duration_ms)

            session = manager.start_polling("1234", on_update)
            await session.wait_closed()
    """

    def __init__(
        self,
        fetcher: ExecutionFetcher,
        *,
        default_interval_ms: int | None = None,
        drop_stale: bool = False,
        config: EngineConfig | None = None,
    ):
        """
        Args:
            fetcher: Execution-query collaborator (e.g. ``EngineClient``)
            default_interval_ms: Interval used when ``start_polling`` gets none
            drop_stale: Discard responses older than the newest one delivered
            config: Source of the default interval when none is given; falls
                back to ``polling.interval_ms`` from the config file
        """
        self._fetcher = fetcher
        if default_interval_ms is None:
            default_interval_ms = (
                config.poll_interval_ms if config is not None else get_poll_interval_ms()
            )
        self._default_interval_ms = default_interval_ms
        self._drop_stale = drop_stale
        self._sessions: dict[str, PollingSession] = {}
        self._tasks: set[asyncio.Task] = set()

    # === Queries ===

    @property
    def active_executions(self) -> list[str]:
        return list(self._sessions)

    def is_polling(self, execution_id: str) -> bool:
        return execution_id in self._sessions

    def get_session(self, execution_id: str) -> PollingSession | None:
        return self._sessions.get(execution_id)

    # === Session control ===

    def start_polling(
        self,
        execution_id: str,
        on_update: UpdateHandler,
        interval_ms: int | None = None,
    ) -> PollingSession:
        """
        Start tracking ``execution_id``; restarts any existing session for it.

        Must be called with a running event loop. The first fetch happens
        right away; later ones every ``interval_ms`` until the session stops.

        Returns:
            The new session
        """
        if interval_ms is None:
            interval_ms = self._default_interval_ms
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        if execution_id in self._sessions:
            self.stop_polling(execution_id)

        session = PollingSession(
            execution_id=execution_id,
            on_update=on_update,
            interval_ms=interval_ms,
        )
        self._sessions[execution_id] = session
        session.state = SessionState.POLLING
        session._scheduler = self._spawn(self._schedule(session), name=f"poll:{execution_id}")

        logger.info(f"Started polling execution {execution_id} every {interval_ms}ms")
        return session

    def stop_polling(self, execution_id: str) -> None:
        """Stop the session for ``execution_id``; no-op when none is active.

        A fetch already in flight is not cancelled, its result is dropped.
        """
        session = self._sessions.pop(execution_id, None)
        if session is not None:
            self._close(session)

    def stop_all_polling(self) -> None:
        """Stop every session owned by this manager."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            self._close(session)

    async def aclose(self) -> None:
        """Stop all sessions and wait for outstanding fetches to unwind."""
        self.stop_all_polling()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "PollingManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def get_execution(self, execution_id: str) -> ExecutionStatus:
        """Fetch one status outside of any session; errors propagate."""
        record = await self._fetcher.fetch_execution(execution_id)
        record = self._coerce(record)
        if record.not_found:
            raise ExecutionNotFoundError(execution_id)
        return ExecutionStatus.from_record(record)

    # === Internals ===

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _close(self, session: PollingSession) -> None:
        if session.state == SessionState.STOPPED:
            return
        session.state = SessionState.STOPPED
        scheduler = session._scheduler
        if scheduler is not None and not scheduler.done():
            scheduler.cancel()
        session._closed.set()
        logger.info(
            f"Stopped polling execution {session.execution_id} "
            f"after {session.updates_delivered} update(s)"
        )

    def _stop_session(self, session: PollingSession) -> None:
        # A restarted id has a newer session; only stop our own
        if self._sessions.get(session.execution_id) is session:
            del self._sessions[session.execution_id]
        self._close(session)

    def _is_current(self, session: PollingSession) -> bool:
        return session.active and self._sessions.get(session.execution_id) is session

    async def _schedule(self, session: PollingSession) -> None:
        set_trace_context(execution_id=session.execution_id)
        interval = session.interval_ms / 1000
        while session.active:
            session.ticks_started += 1
            self._spawn(
                self._tick(session, session.ticks_started),
                name=f"poll:{session.execution_id}:{session.ticks_started}",
            )
            await asyncio.sleep(interval)

    @staticmethod
    def _coerce(record: ExecutionRecord | Mapping) -> ExecutionRecord:
        if isinstance(record, ExecutionRecord):
            return record
        return ExecutionRecord.model_validate(record)

    async def _tick(self, session: PollingSession, sequence: int) -> None:
        execution_id = session.execution_id
        try:
            record = self._coerce(await self._fetcher.fetch_execution(execution_id))
        except ExecutionNotFoundError:
            logger.info(f"Execution {execution_id} not found, stopping polling")
            self._stop_session(session)
            return
        except Exception as e:
            logger.warning(
                f"Polling execution {execution_id} failed, retrying next interval: {e}",
                extra={"sequence": sequence},
            )
            return

        if record.not_found:
            logger.info(f"Execution {execution_id} not found, stopping polling")
            self._stop_session(session)
            return

        if not self._is_current(session):
            logger.debug(f"Dropping response {sequence} for stopped session {execution_id}")
            return

        if self._drop_stale and sequence < session.last_delivered:
            logger.debug(
                f"Dropping stale response {sequence} for execution {execution_id} "
                f"(already delivered {session.last_delivered})"
            )
            return

        session.last_delivered = max(session.last_delivered, sequence)
        try:
            status = ExecutionStatus.from_record(record, sequence=sequence)
        except Exception as e:
            logger.warning(
                f"Could not read status of execution {execution_id}: {e}",
                extra={"sequence": sequence},
            )
        else:
            await self._notify(session, status)

        if record.finished:
            logger.debug(f"Execution {execution_id} finished with status {record.status}")
            self._stop_session(session)

    async def _notify(self, session: PollingSession, status: ExecutionStatus) -> None:
        session.updates_delivered += 1
        try:
            result = session.on_update(status)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Polling observer error for execution {session.execution_id}: {e}")
