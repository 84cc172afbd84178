"""Audit pipeline: Publisher → Transformer → Router → {queue, drivers}.

Events routed to a digest branch are buffered in that branch's queue for
the next tick. A non-digestible event is also queued on digest branches
whose tags match but whose digestible filter rejects it; there it only
splits runs of the same resource and actor and is never emitted.

Events routed to a direct branch go straight to the branch's drivers.
Synchronous rules make ``publish`` wait for direct delivery; otherwise
delivery runs in a tracked background task.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from chronicle.digest.queue import EventQueue
from chronicle.drivers.dispatcher import DeliveryDispatcher, DeliveryReport
from chronicle.errors import ValidationError
from chronicle.models import Change, Event
from chronicle.observability.logging import get_logger
from chronicle.routing import Branch, BranchKind, Router
from chronicle.transformer import Transformer, UnchangedFieldWarning

logger = get_logger(__name__)


@dataclass
class PublishResult:
    """What happened to one published change."""

    events: tuple[Event, ...]
    warnings: tuple[UnchangedFieldWarning, ...] = ()
    queued: dict[str, int] = field(default_factory=dict)
    barriers: dict[str, int] = field(default_factory=dict)
    direct: dict[str, int] = field(default_factory=dict)
    report: DeliveryReport | None = None


class AuditPipeline:
    """Entry point for publishers."""

    def __init__(
        self,
        transformer: Transformer,
        router: Router,
        queues: Mapping[str, EventQueue],
        dispatcher: DeliveryDispatcher,
    ) -> None:
        """Initialize pipeline.

        Args:
            transformer: Builds events from changes
            router: Branch table
            queues: One queue per digest branch, keyed by branch name
            dispatcher: Delivers direct-branch events

        Raises:
            ValidationError: A digest branch has no queue
        """
        missing = [
            branch.name
            for branch in router.branches
            if branch.kind == BranchKind.DIGEST and branch.name not in queues
        ]
        if missing:
            raise ValidationError(
                f"Digest branches without a queue: {', '.join(missing)}",
                field="queues",
            )
        self._transformer = transformer
        self._router = router
        self._queues = dict(queues)
        self._dispatcher = dispatcher
        self._pending: set[asyncio.Task[DeliveryReport]] = set()

    async def publish(self, change: Change | Mapping[str, Any]) -> PublishResult:
        """Transform, route and hand off a change.

        Every event is routed before anything is queued or delivered, so a
        routing failure leaves no partial output behind.

        Raises:
            ValidationError: Malformed change
            ReservedNameError: Custom type collides with a reserved name
            RoutingError: An event matched no branch
        """
        transformed = self._transformer.transform(change)
        plan = [
            (event, *self._router.split(event), self._router.barriers(event))
            for event in transformed.events
        ]

        result = PublishResult(events=transformed.events, warnings=transformed.warnings)
        deliveries: list[tuple[Branch, Event]] = []

        for event, digest_branches, direct_branches, barrier_branches in plan:
            for branch in digest_branches:
                await self._queues[branch.name].put([event])
                result.queued[branch.name] = result.queued.get(branch.name, 0) + 1
            for branch in barrier_branches:
                await self._queues[branch.name].put([event])
                result.barriers[branch.name] = result.barriers.get(branch.name, 0) + 1
            for branch in direct_branches:
                deliveries.append((branch, event))
                result.direct[branch.name] = result.direct.get(branch.name, 0) + 1

        logger.debug(
            "change_published",
            event_count=len(transformed.events),
            queued=result.queued,
            barriers=result.barriers,
            direct=result.direct,
        )

        if not deliveries:
            return result

        sync = any(event.rule.sync for event in transformed.events)
        if sync:
            result.report = await self._deliver(deliveries)
        else:
            task = asyncio.create_task(self._deliver(deliveries))
            self._pending.add(task)
            task.add_done_callback(self._on_background_done)
        return result

    async def _deliver(self, deliveries: list[tuple[Branch, Event]]) -> DeliveryReport:
        reports = await asyncio.gather(
            *(
                self._dispatcher.dispatch([event], branch.drivers or None)
                for branch, event in deliveries
            )
        )
        report = DeliveryReport()
        for partial in reports:
            report = report.merge(partial)
        return report

    def _on_background_done(self, task: asyncio.Task[DeliveryReport]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "background_delivery_failed",
                error=str(error),
                error_type=type(error).__name__,
            )

    async def drain(self) -> list[DeliveryReport]:
        """Wait for all background deliveries started so far."""
        if not self._pending:
            return []
        results = await asyncio.gather(*list(self._pending), return_exceptions=True)
        return [r for r in results if isinstance(r, DeliveryReport)]

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)
