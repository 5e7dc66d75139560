"""Periodic refresh state machine.

States and transitions::

    Idle ──start()──▶ Refreshing ──pause()──▶ Paused
      ▲                 │   ▲                   │
      └────stop()───────┘   └─────resume()──────┘

``start()`` fetches immediately and arms a repeating timer. A tick that
arrives while any fetch is still outstanding is dropped, so scheduled
refreshes never overlap. ``manual_refresh()`` always issues a fetch and
leaves the timer alone.

Every fetch is stamped with a strictly increasing generation when it is
issued. A result is applied only if its generation is newer than the last
applied one, so out-of-order completions can never roll the view back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from fleettrack.exceptions import (
    FetchError,
    FleetMalformedError,
    FleetNetworkError,
    FleetUnauthorizedError,
)
from fleettrack.models.snapshot import Snapshot

_logger = logging.getLogger(__name__)

FetchFn = Callable[[int], Awaitable[Snapshot]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SchedulerState(StrEnum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    PAUSED = "paused"


class Timer(Protocol):
    """A repeating timer the scheduler arms and cancels."""

    @property
    def active(self) -> bool: ...

    def start(self, interval: float, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class LoopTimer:
    """Repeating timer on the running asyncio event loop.

    The next call is armed before the callback runs, so the period stays
    fixed regardless of how long the callback takes.
    """

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._interval = 0.0
        self._callback: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        self.cancel()
        self._loop = asyncio.get_running_loop()
        self._interval = interval
        self._callback = callback
        self._arm()

    def _arm(self) -> None:
        assert self._loop is not None  # noqa: S101
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._arm()
        if self._callback is not None:
            self._callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class ManualTimer:
    """Timer driven explicitly through :meth:`fire`.

    Lets tests and embedding UIs step the scheduler without waiting on
    the wall clock.
    """

    def __init__(self) -> None:
        self.interval: float | None = None
        self._callback: Callable[[], None] | None = None
        self.starts = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self._callback = callback
        self.starts += 1

    def cancel(self) -> None:
        self._callback = None

    def fire(self) -> bool:
        """Deliver one tick. Returns ``False`` when the timer is not armed."""
        if self._callback is None:
            return False
        self._callback()
        return True


class RefreshScheduler:
    """Drive snapshot fetches on a fixed period plus on demand.

    Parameters
    ----------
    fetch
        Coroutine function taking the generation number and returning a
        :class:`Snapshot`.
    interval
        Seconds between scheduled refreshes.
    timer
        Timer implementation; defaults to :class:`LoopTimer`.
    failure_threshold
        Consecutive failures after which :attr:`connection_issue` is raised.
    on_snapshot
        Called with every snapshot that is newer than the last applied one.
    on_error
        Called with every transient (network) failure.
    on_unauthorized
        Called once when the backend rejects the credential; polling halts.
    clock
        Source of the ``last_updated`` timestamp.
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        interval: float = 10.0,
        timer: Timer | None = None,
        failure_threshold: int = 2,
        on_snapshot: Callable[[Snapshot], None] | None = None,
        on_error: Callable[[FetchError], None] | None = None,
        on_unauthorized: Callable[[FleetUnauthorizedError], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._fetch = fetch
        self._interval = interval
        self._timer: Timer = timer if timer is not None else LoopTimer()
        self._failure_threshold = failure_threshold
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._on_unauthorized = on_unauthorized
        self._clock = clock

        self._state = SchedulerState.IDLE
        self._tasks: set[asyncio.Task[None]] = set()
        self._issued_generation = 0
        self._applied_generation = 0
        self.consecutive_failures = 0
        self.last_error: FetchError | None = None
        self.last_updated: datetime | None = None
        self.dropped_ticks = 0
        self.discarded_results = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def issued_generation(self) -> int:
        return self._issued_generation

    @property
    def applied_generation(self) -> int:
        return self._applied_generation

    @property
    def connection_issue(self) -> bool:
        return self.consecutive_failures >= self._failure_threshold

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None] | None:
        """Idle → Refreshing: fetch now, then every ``interval`` seconds."""
        if self._state is not SchedulerState.IDLE:
            _logger.debug("start() ignored in state %s", self._state)
            return None
        self._state = SchedulerState.REFRESHING
        task = self._issue()
        self._timer.start(self._interval, self._on_tick)
        return task

    def pause(self) -> None:
        """Any → Paused. In-flight fetches still complete and may apply."""
        self._timer.cancel()
        self._state = SchedulerState.PAUSED

    def resume(self) -> None:
        """Paused → Refreshing. The next fetch happens on the next tick."""
        if self._state is not SchedulerState.PAUSED:
            _logger.debug("resume() ignored in state %s", self._state)
            return
        self._state = SchedulerState.REFRESHING
        self._timer.start(self._interval, self._on_tick)

    def manual_refresh(self) -> asyncio.Task[None]:
        """Fetch immediately, in any state, without touching the timer."""
        return self._issue()

    def stop(self) -> None:
        """Any → Idle. Cancels the timer and every outstanding fetch."""
        self._timer.cancel()
        self._state = SchedulerState.IDLE
        self.discard_in_flight()

    def discard_in_flight(self) -> None:
        """Cancel every outstanding fetch; nothing it produces will be applied.

        State and timer are left alone, so polling continues on the next tick.
        """
        # Whatever is still in flight is stale from here on.
        self._applied_generation = self._issued_generation
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

    async def aclose(self) -> None:
        """Stop and wait for cancelled fetches to unwind."""
        self.stop()
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def wait_idle(self) -> None:
        """Wait until no fetch is outstanding."""
        current = asyncio.current_task()
        while True:
            pending = [task for task in self._tasks if task is not current]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_tick(self) -> None:
        if self._state is not SchedulerState.REFRESHING:
            return
        if self._tasks:
            self.dropped_ticks += 1
            _logger.debug("Dropping tick: %d fetch(es) still in flight", len(self._tasks))
            return
        self._issue()

    def _issue(self) -> asyncio.Task[None]:
        self._issued_generation += 1
        generation = self._issued_generation
        task = asyncio.get_running_loop().create_task(self._run(generation))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Refresh task failed unexpectedly", exc_info=exc)

    def _is_stale(self, generation: int) -> bool:
        return generation <= self._applied_generation

    async def _run(self, generation: int) -> None:
        try:
            snapshot = await self._fetch(generation)
        except FleetUnauthorizedError as exc:
            if self._is_stale(generation):
                _logger.debug("Ignoring unauthorized result of superseded generation %d", generation)
                return
            _logger.warning("Credential rejected (%s); halting refresh", exc)
            self.last_error = exc
            self.stop()
            self._notify(self._on_unauthorized, exc)
            return
        except FleetNetworkError as exc:
            self._record_failure(generation, exc)
            return
        except FleetMalformedError as exc:
            _logger.warning("Malformed snapshot for generation %d: %s", generation, exc)
            snapshot = Snapshot.empty(generation, degraded=True)

        if snapshot.generation != generation:
            snapshot = snapshot.model_copy(update={"generation": generation})
        self._deliver(snapshot)

    def _record_failure(self, generation: int, exc: FetchError) -> None:
        if self._is_stale(generation):
            _logger.debug("Ignoring failure of superseded generation %d: %s", generation, exc)
            return
        self.consecutive_failures += 1
        self.last_error = exc
        if self.consecutive_failures == self._failure_threshold:
            _logger.warning("%d consecutive refresh failures; data is stale: %s", self.consecutive_failures, exc)
        else:
            _logger.debug("Refresh failed (%d in a row): %s", self.consecutive_failures, exc)
        self._notify(self._on_error, exc)

    def _deliver(self, snapshot: Snapshot) -> None:
        if self._is_stale(snapshot.generation):
            self.discarded_results += 1
            _logger.debug(
                "Discarding generation %d; generation %d already applied",
                snapshot.generation,
                self._applied_generation,
            )
            return
        self._applied_generation = snapshot.generation
        self.consecutive_failures = 0
        self.last_updated = self._clock()
        self._notify(self._on_snapshot, snapshot)

    @staticmethod
    def _notify(callback: Callable[[Any], None] | None, arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            _logger.warning("Scheduler callback %r failed", callback, exc_info=True)
