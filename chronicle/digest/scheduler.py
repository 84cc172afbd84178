"""Digest scheduler: runs the digest engine on a fixed tick.

Each tick:
1. Holds the tick lock for its scope (skips if another tick holds it)
2. Snapshots every pending event in the queue
3. Builds all digests
4. Hands the digests to the sink (the delivery dispatcher)
5. Acknowledges the consumed events

A failure before step 5 aborts the tick: nothing is acknowledged, and
the next tick digests the same events again. Digest ids are derived from
their constituent events, so a digest handed over twice deduplicates at
the drivers.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from uuid import uuid4

from chronicle.digest.engine import DigestEngine
from chronicle.digest.lock import InMemoryTickLock, TickLock
from chronicle.digest.queue import EventQueue
from chronicle.errors import DigestTickError
from chronicle.models import Digest
from chronicle.observability.logging import get_logger
from chronicle.observability.metrics import (
    DIGESTS_EMITTED,
    DIGESTS_TRUNCATED,
    TICK_LATENCY,
    TICKS,
)

logger = get_logger(__name__)

DigestSink = Callable[[Sequence[Digest]], Awaitable[object]]


class TickStatus(str, Enum):
    """Outcome of a tick that did not raise."""

    COMPLETED = "completed"
    EMPTY = "empty"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TickResult:
    """Summary of one tick."""

    tick_id: str
    status: TickStatus
    events_consumed: int = 0
    digests: tuple[Digest, ...] = field(default_factory=tuple)


class DigestScheduler:
    """Tick-triggered batch task for one digest branch."""

    def __init__(
        self,
        queue: EventQueue,
        sink: DigestSink,
        engine: DigestEngine | None = None,
        lock: TickLock | None = None,
        scope: str = "digest",
        tick_interval: timedelta = timedelta(minutes=5),
    ) -> None:
        """Initialize scheduler.

        Args:
            queue: Buffer of digest-eligible events
            sink: Receives every digest of a tick before it commits
            engine: Digest engine (stateless)
            lock: Tick lock; share one across processes to keep a single writer
            scope: Lock scope, normally the digest branch name
            tick_interval: Time between ticks when running in the background
        """
        self._queue = queue
        self._sink = sink
        self._engine = engine or DigestEngine()
        self._lock = lock or InMemoryTickLock()
        self._scope = scope
        self._tick_interval = tick_interval
        self._running = False
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def running(self) -> bool:
        return self._running

    async def run_tick(self) -> TickResult:
        """Run one tick to completion.

        Raises:
            DigestTickError: The tick aborted; no output was committed
        """
        tick_id = uuid4().hex
        async with self._lock.hold(self._scope) as acquired:
            if not acquired:
                TICKS.labels(status=TickStatus.SKIPPED.value).inc()
                logger.info("digest_tick_skipped", tick_id=tick_id, scope=self._scope)
                return TickResult(tick_id=tick_id, status=TickStatus.SKIPPED)

            started = time.perf_counter()
            try:
                result = await self._run_locked(tick_id)
            except asyncio.CancelledError:
                TICKS.labels(status="cancelled").inc()
                logger.warning("digest_tick_cancelled", tick_id=tick_id, scope=self._scope)
                raise
            except Exception as e:
                TICKS.labels(status="failed").inc()
                logger.error(
                    "digest_tick_failed",
                    tick_id=tick_id,
                    scope=self._scope,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DigestTickError(tick_id, str(e), cause=e) from e

            TICK_LATENCY.observe(time.perf_counter() - started)
            TICKS.labels(status=result.status.value).inc()
            return result

    async def _run_locked(self, tick_id: str) -> TickResult:
        events = await self._queue.pending()
        if not events:
            logger.debug("digest_tick_empty", tick_id=tick_id, scope=self._scope)
            return TickResult(tick_id=tick_id, status=TickStatus.EMPTY)

        digests = tuple(self._engine.build(events))

        if digests:
            await self._sink(digests)
        await self._queue.acknowledge(event.id for event in events)

        for digest in digests:
            kind = "passthrough" if digest.passthrough else "merged"
            DIGESTS_EMITTED.labels(event_type=digest.event_type.name, kind=kind).inc()
            if digest.truncated:
                DIGESTS_TRUNCATED.labels(event_type=digest.event_type.name).inc()

        logger.info(
            "digest_tick_completed",
            tick_id=tick_id,
            scope=self._scope,
            events_consumed=len(events),
            digest_count=len(digests),
            merged_count=sum(1 for d in digests if not d.passthrough),
        )
        return TickResult(
            tick_id=tick_id,
            status=TickStatus.COMPLETED,
            events_consumed=len(events),
            digests=digests,
        )

    async def start(self) -> None:
        """Start running ticks in the background."""
        if self._running:
            logger.warning("digest_scheduler_already_running", scope=self._scope)
            return

        self._running = True
        self._loop_task = asyncio.create_task(self._tick_loop())
        logger.info(
            "digest_scheduler_started",
            scope=self._scope,
            tick_interval_seconds=self._tick_interval.total_seconds(),
        )

    async def stop(self) -> None:
        """Stop the background loop. A tick in progress is cancelled."""
        if not self._running:
            return

        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        logger.info("digest_scheduler_stopped", scope=self._scope)

    async def _tick_loop(self) -> None:
        while self._running:
            try:
                await self.run_tick()
            except DigestTickError as e:
                # Retried wholesale on the next tick
                logger.error("digest_tick_will_retry", tick_id=e.tick_id, error=e.message)

            await asyncio.sleep(self._tick_interval.total_seconds())
