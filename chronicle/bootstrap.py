"""Bootstrap a wired pipeline from configuration.

Builds the transformer, router, per-branch queues and schedulers, drivers
and dispatcher described by ``Settings``.

Example usage:

    from chronicle.bootstrap import bootstrap

    app = bootstrap()
    await app.start()

    await app.pipeline.publish({
        "event_type": "update",
        "resource": {"id": "order-1", "name": "Order #1"},
        "actor": {"id": "u-7", "name": "Ada"},
        "fields": {"status": {"old": "new", "new": "paid"}},
    })
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import partial

from redis.asyncio import Redis

from chronicle.config import Settings, get_settings
from chronicle.config.models import DeliveryConfig, DigestConfig, DriverConfig, WebhookDriverConfig
from chronicle.digest import (
    DigestEngine,
    DigestScheduler,
    EventQueue,
    InMemoryEventQueue,
    InMemoryTickLock,
    RedisTickLock,
    TickLock,
    TickResult,
)
from chronicle.drivers import (
    DeadLetterSink,
    DeliveryDispatcher,
    Driver,
    InMemoryDeadLetterSink,
    InMemoryDriver,
    LoggingDeadLetterSink,
    RetryPolicy,
    WebhookDriver,
)
from chronicle.errors import ValidationError
from chronicle.models import EventRuleSet, EventTypeRegistry
from chronicle.observability.logging import get_logger, setup_logging
from chronicle.pipeline import AuditPipeline
from chronicle.routing import BranchKind, Router
from chronicle.transformer import Transformer

logger = get_logger(__name__)


@dataclass
class Chronicle:
    """Everything bootstrap wired together."""

    settings: Settings
    transformer: Transformer
    router: Router
    dispatcher: DeliveryDispatcher
    pipeline: AuditPipeline
    dead_letter: DeadLetterSink
    queues: dict[str, EventQueue] = field(default_factory=dict)
    schedulers: dict[str, DigestScheduler] = field(default_factory=dict)

    async def start(self) -> None:
        """Start background ticks on every digest branch."""
        for scheduler in self.schedulers.values():
            await scheduler.start()

    async def run_ticks(self) -> dict[str, TickResult]:
        """Run one tick on every digest branch now."""
        return {name: await s.run_tick() for name, s in self.schedulers.items()}

    async def stop(self) -> None:
        """Stop ticks, wait for background deliveries, close drivers."""
        for scheduler in self.schedulers.values():
            await scheduler.stop()
        await self.pipeline.drain()
        await self.dispatcher.close()


def build_driver(config: DriverConfig) -> Driver:
    if isinstance(config, WebhookDriverConfig):
        return WebhookDriver(
            name=config.name,
            url=config.url,
            secret=config.secret.get_secret_value(),
            timeout_ms=config.timeout_ms,
        )
    return InMemoryDriver(name=config.name)


def build_tick_lock(config: DigestConfig) -> TickLock:
    if config.lock_backend == "redis":
        return RedisTickLock(
            Redis.from_url(config.redis_url),
            lock_timeout=config.lock_timeout_seconds,
        )
    return InMemoryTickLock()


def build_dead_letter(config: DeliveryConfig) -> DeadLetterSink:
    if config.dead_letter == "memory":
        return InMemoryDeadLetterSink()
    return LoggingDeadLetterSink()


def bootstrap(
    settings: Settings | None = None,
    *,
    drivers: Mapping[str, Driver] | None = None,
    queues: Mapping[str, EventQueue] | None = None,
    configure_logging: bool = True,
) -> Chronicle:
    """Build a fully wired pipeline.

    Args:
        settings: Settings to use (default: loaded from config/ and env)
        drivers: Extra or replacement drivers keyed by name
        queues: Durable queues per digest branch; in-memory queues otherwise
        configure_logging: Apply the observability settings to structlog

    Raises:
        ValidationError: A branch references an unknown driver
        ReservedNameError: A configured custom type is reserved
    """
    settings = settings or get_settings()

    if configure_logging:
        obs = settings.observability
        setup_logging(
            level=obs.log_level,
            format=obs.log_format,
            redact_pii=obs.redact_pii,
            redact_keys=obs.redact_keys,
        )

    registry = EventTypeRegistry(
        system_types=settings.event_types.system,
        custom_types=settings.event_types.custom,
        strict=settings.event_types.strict,
    )
    transformer = Transformer(rules=EventRuleSet(settings.rules), registry=registry)
    router = Router(settings.routing.branches)

    all_drivers: dict[str, Driver] = {c.name: build_driver(c) for c in settings.drivers}
    all_drivers.update(drivers or {})

    for branch in router.branches:
        unknown = [name for name in branch.drivers if name not in all_drivers]
        if unknown:
            raise ValidationError(
                f"Branch {branch.name!r} references unknown drivers: {', '.join(unknown)}",
                field="routing.branches",
            )

    delivery = settings.delivery
    dead_letter = build_dead_letter(delivery)
    dispatcher = DeliveryDispatcher(
        all_drivers,
        dead_letter=dead_letter,
        retry=RetryPolicy(
            max_attempts=delivery.max_attempts,
            base_delay_seconds=delivery.base_delay_seconds,
            max_delay_seconds=delivery.max_delay_seconds,
        ),
    )

    lock = build_tick_lock(settings.digest)
    branch_queues: dict[str, EventQueue] = {}
    schedulers: dict[str, DigestScheduler] = {}
    for branch in router.branches:
        if branch.kind != BranchKind.DIGEST:
            continue
        queue = (queues or {}).get(branch.name)
        if queue is None:
            queue = InMemoryEventQueue()
        branch_queues[branch.name] = queue
        schedulers[branch.name] = DigestScheduler(
            queue=queue,
            sink=partial(dispatcher.dispatch, driver_names=branch.drivers or None),
            # Non-digestible events reach a digestible-only branch as barriers only
            engine=DigestEngine(emit_barriers=branch.digestible is not True),
            lock=lock,
            scope=branch.name,
            tick_interval=settings.digest.tick_interval,
        )

    pipeline = AuditPipeline(transformer, router, branch_queues, dispatcher)

    logger.info(
        "chronicle_bootstrapped",
        branches=[b.name for b in router.branches],
        drivers=sorted(all_drivers),
        digest_branches=sorted(schedulers),
        rules=sorted(transformer.rules),
    )
    return Chronicle(
        settings=settings,
        transformer=transformer,
        router=router,
        dispatcher=dispatcher,
        pipeline=pipeline,
        dead_letter=dead_letter,
        queues=branch_queues,
        schedulers=schedulers,
    )
