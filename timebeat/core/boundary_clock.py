"""
Boundary clock.

Samples the current instant once per tick and notifies listeners whenever the
second, minute, hour or day field differs from the previous sample:
- Sampler task: takes a TimeSample every `tick_interval_s`
- Boundary detection: plain field inequality, so backward clock adjustments
  are reported as rollovers too
- Dispatch: Second -> Minute -> Hour -> Day, listeners in registration order,
  each awaited before the next
- Overlap policy: how a tick is handled while an earlier one still dispatches
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import timedelta
from typing import Optional

from timebeat.core.clock import SystemTimeSource, TimeSource
from timebeat.core.config import ClockConfig
from timebeat.core.registry import Handler, ListenerRegistry, Subscription
from timebeat.core.types import (
    BoundaryEvent,
    BoundaryKind,
    ClockState,
    DispatchStats,
    OverlapPolicy,
    TimeMode,
    TimeSample,
)
from timebeat.errors.errors import ClockError

logger = logging.getLogger(__name__)


def detect_boundaries(old: TimeSample, new: TimeSample) -> list[BoundaryKind]:
    """Return the kinds whose field differs between two samples, in dispatch order."""
    return [kind for kind in BoundaryKind if old.field(kind) != new.field(kind)]


class BoundaryClock:
    """
    Periodic clock notifying listeners on second/minute/hour/day rollover.

    The clock is live from construction: the first sample is taken and the
    sampler task is started immediately, so it must be created inside a
    running event loop. Call `await stop()` (or use `async with`) to dispose.

    Usage:
        clock = BoundaryClock(TimeMode.GLOBAL)
        sub = clock.subscribe(BoundaryKind.MINUTE, on_minute)
        ...
        await clock.stop()
    """

    def __init__(
        self,
        mode: TimeMode = TimeMode.GLOBAL,
        *,
        config: Optional[ClockConfig] = None,
        time_source: Optional[TimeSource] = None,
        name: str = "boundary_clock",
    ) -> None:
        """
        Initialize and start the clock.

        Args:
            mode: Sample local (SYSTEM) or UTC (GLOBAL) time; fixed for the instance
            config: Tick interval, overlap policy and error isolation
            time_source: Source of "now"; defaults to the wall clock
            name: Used for task names and log messages
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise ClockError(
                "BoundaryClock must be constructed inside a running event loop",
                component=name,
            ) from e

        self._mode = TimeMode(mode)
        self._config = config or ClockConfig()
        self._source = time_source or SystemTimeSource()
        self._name = name

        self._registry = ListenerRegistry()
        self._stats = DispatchStats()
        self._state = ClockState.RUNNING
        self._failure: Optional[BaseException] = None
        self._failure_raised = False
        self._stopped = asyncio.Event()
        self._stop_started = False

        self._tick_seq = 0
        self._previous = self._take_sample()

        # OverlapPolicy.QUEUE
        self._queue: asyncio.Queue[tuple[int, TimeSample, TimeSample]] = asyncio.Queue(
            maxsize=self._config.max_pending_ticks
        )
        self._dispatcher_task: Optional[asyncio.Task[None]] = None
        self._dispatcher_busy = False

        # OverlapPolicy.DROP / CONCURRENT
        self._dispatch_tasks: set[asyncio.Task[None]] = set()

        if self._config.overlap_policy == OverlapPolicy.QUEUE:
            self._dispatcher_task = asyncio.create_task(
                self._dispatch_loop(), name=f"{name}.dispatch"
            )
        self._sampler_task: asyncio.Task[None] = asyncio.create_task(
            self._sample_loop(), name=f"{name}.sampler"
        )
        logger.info(
            f"{name} started (mode={self._mode.value}, "
            f"interval={self._config.tick_interval_s}s, "
            f"policy={self._config.overlap_policy.value})"
        )

    # --- Properties ---

    @property
    def mode(self) -> TimeMode:
        return self._mode

    @property
    def config(self) -> ClockConfig:
        return self._config

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def stats(self) -> DispatchStats:
        """Get dispatch statistics."""
        return self._stats

    @property
    def previous_sample(self) -> TimeSample:
        return self._previous

    @property
    def failure(self) -> Optional[BaseException]:
        """Listener error that stopped the clock, if any."""
        return self._failure

    # --- Subscription API ---

    def subscribe(self, kind: BoundaryKind, handler: Handler) -> Subscription:
        """
        Register a listener for one boundary kind.

        The handler receives a BoundaryEvent and may return an awaitable,
        which is awaited before the next listener runs.
        """
        if self._state != ClockState.RUNNING:
            raise ClockError(
                f"Cannot subscribe to a clock in state {self._state.value}",
                component=self._name,
            )
        return self._registry.add(kind, handler)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        return self._registry.remove(subscription)

    def on_second(self, handler: Handler) -> Subscription:
        return self.subscribe(BoundaryKind.SECOND, handler)

    def on_minute(self, handler: Handler) -> Subscription:
        return self.subscribe(BoundaryKind.MINUTE, handler)

    def on_hour(self, handler: Handler) -> Subscription:
        return self.subscribe(BoundaryKind.HOUR, handler)

    def on_day(self, handler: Handler) -> Subscription:
        return self.subscribe(BoundaryKind.DAY, handler)

    def listener_count(self, kind: Optional[BoundaryKind] = None) -> int:
        """Number of listeners for a kind, or for all kinds."""
        return self._registry.count(kind)

    # --- Manual driving ---

    async def tick(self) -> list[BoundaryKind]:
        """
        Take one sample now and dispatch it inline, bypassing the overlap policy.

        Listener errors propagate unless isolate_listener_errors is set.
        Returns the kinds that rolled over.
        """
        self._ensure_running()
        seq, old, new = self._advance()
        return await self._dispatch(seq, old, new)

    async def dispatch(self, old: TimeSample, new: TimeSample) -> list[BoundaryKind]:
        """Dispatch the boundaries between two explicit samples."""
        self._ensure_running()
        self._tick_seq += 1
        return await self._dispatch(self._tick_seq, old, new)

    # --- Lifecycle ---

    async def stop(self) -> None:
        """
        Stop the clock.

        No listener invocation starts after this is called. A listener that is
        already running is allowed to finish. If the background dispatch failed
        because of a non-isolated listener error, that error is raised here once.
        """
        if not self._stop_started:
            self._stop_started = True
            if self._state == ClockState.RUNNING:
                self._state = ClockState.STOPPING
            try:
                await self._shutdown()
            finally:
                if self._state == ClockState.STOPPING:
                    self._state = ClockState.STOPPED
                self._stopped.set()
            logger.info(f"{self._name} stopped ({self._stats.ticks} ticks)")
        elif not self._is_own_task(asyncio.current_task()):
            # the first caller may be awaiting our own tasks, so only outsiders wait
            await self._stopped.wait()

        if self._failure is not None and not self._failure_raised:
            self._failure_raised = True
            raise self._failure

    async def __aenter__(self) -> BoundaryClock:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _shutdown(self) -> None:
        current = asyncio.current_task()

        task = self._sampler_task
        if task is not current:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        task = self._dispatcher_task
        if task is not None and task is not current:
            if not self._dispatcher_busy:
                task.cancel()
            try:
                # a busy dispatcher finishes its in-flight listener and exits
                await task
            except asyncio.CancelledError:
                pass

        pending = [t for t in self._dispatch_tasks if t is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # --- Internals ---

    def _is_own_task(self, task: Optional[asyncio.Task]) -> bool:
        return task is not None and (
            task is self._sampler_task
            or task is self._dispatcher_task
            or task in self._dispatch_tasks
        )

    def _ensure_running(self) -> None:
        if self._state != ClockState.RUNNING:
            raise ClockError(
                f"Clock is not running (state={self._state.value})",
                component=self._name,
            )

    def _take_sample(self) -> TimeSample:
        return TimeSample.from_datetime(self._source.now(self._mode))

    def _advance(self) -> tuple[int, TimeSample, TimeSample]:
        """Take a new sample and make it the previous one."""
        new = self._take_sample()
        old, self._previous = self._previous, new
        self._tick_seq += 1
        self._stats.ticks += 1
        self._stats.last_tick_at = new.taken_at
        return self._tick_seq, old, new

    async def _sample_loop(self) -> None:
        """Main sampling loop."""
        loop = asyncio.get_running_loop()
        interval = self._config.tick_interval_s
        next_at = loop.time() + interval
        try:
            while self._state == ClockState.RUNNING:
                await asyncio.sleep(max(0.0, next_at - loop.time()))
                if self._state != ClockState.RUNNING:
                    break
                next_at += interval
                self._on_tick()

        except asyncio.CancelledError:
            logger.debug(f"{self._name} sampler cancelled")
            raise

    def _on_tick(self) -> None:
        seq, old, new = self._advance()
        if not detect_boundaries(old, new):
            return

        policy = self._config.overlap_policy
        if policy == OverlapPolicy.QUEUE:
            try:
                self._queue.put_nowait((seq, old, new))
            except asyncio.QueueFull:
                self._stats.dropped_ticks += 1
                logger.warning(
                    f"{self._name}: dispatch queue full ({self._queue.maxsize}), dropping tick {seq}"
                )
        elif policy == OverlapPolicy.DROP and self._dispatch_tasks:
            self._stats.dropped_ticks += 1
            logger.warning(f"{self._name}: dispatch in flight, dropping tick {seq}")
        else:
            task = asyncio.create_task(
                self._guarded_dispatch(seq, old, new), name=f"{self._name}.tick-{seq}"
            )
            self._dispatch_tasks.add(task)
            task.add_done_callback(self._dispatch_tasks.discard)

    async def _dispatch_loop(self) -> None:
        """Consume queued ticks one at a time."""
        try:
            while self._state == ClockState.RUNNING:
                seq, old, new = await self._queue.get()
                self._dispatcher_busy = True
                try:
                    await self._dispatch(seq, old, new)
                except Exception as e:
                    self._fail(e)
                    return
                finally:
                    self._dispatcher_busy = False
                    self._queue.task_done()

        except asyncio.CancelledError:
            logger.debug(f"{self._name} dispatcher cancelled")
            raise

    async def _guarded_dispatch(self, seq: int, old: TimeSample, new: TimeSample) -> None:
        try:
            await self._dispatch(seq, old, new)
        except Exception as e:
            self._fail(e)

    def _fail(self, error: Exception) -> None:
        """Record a propagated listener error and stop further dispatch."""
        logger.error(f"{self._name}: listener error stopped the clock: {error}", exc_info=error)
        if self._failure is None:
            self._failure = error
        if self._state == ClockState.RUNNING:
            self._state = ClockState.FAILED
            self._sampler_task.cancel()

    async def _dispatch(self, seq: int, old: TimeSample, new: TimeSample) -> list[BoundaryKind]:
        kinds = detect_boundaries(old, new)
        if not kinds:
            return kinds

        started = time.monotonic()
        for kind in kinds:
            if self._state != ClockState.RUNNING:
                break
            # instants are taken at dispatch time, not at sample time
            event = BoundaryEvent(
                kind=kind,
                global_time=self._source.now_utc(),
                system_time=self._source.now_local(),
                tick=seq,
            )
            self._stats.events += 1
            self._stats.by_kind[kind.value] = self._stats.by_kind.get(kind.value, 0) + 1
            logger.debug(f"{self._name}: {kind.value} boundary on tick {seq}")
            await self._notify(event)

        self._stats.dispatched_ticks += 1
        self._stats.last_dispatch_duration = timedelta(seconds=time.monotonic() - started)
        return kinds

    async def _notify(self, event: BoundaryEvent) -> None:
        """Invoke every listener for the event's kind, in registration order."""
        for sub in self._registry.snapshot(event.kind):
            if self._state != ClockState.RUNNING:
                return
            if not sub.active:
                continue
            try:
                result = sub.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                if not self._config.isolate_listener_errors:
                    raise
                self._stats.listener_errors += 1
                logger.error(
                    f"Listener {sub.id} error for {event.kind.value}: {e}",
                    exc_info=True,
                )
