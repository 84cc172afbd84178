"""Fan-out delivery with per-driver isolation.

Every object goes to every selected driver independently and
concurrently. Retryable failures back off exponentially up to a bounded
number of attempts. Whatever still fails lands in the dead-letter sink
and is reported; it never blocks sibling drivers.
"""

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chronicle.drivers.base import Deliverable, DeliveryOutcome, Driver, object_kind
from chronicle.drivers.deadletter import DeadLetter, DeadLetterSink, LoggingDeadLetterSink
from chronicle.errors import (
    DriverDeliveryError,
    PermanentDeliveryError,
    RetryableDeliveryError,
    ValidationError,
)
from chronicle.observability.logging import get_logger
from chronicle.observability.metrics import DEAD_LETTERS, DELIVERY_ATTEMPTS

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: delay = min(base * 2^(n-1), max)."""

    max_attempts: int = 5
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 30.0


@dataclass(frozen=True)
class DriverResult:
    """Final outcome of delivering one object to one driver."""

    driver: str
    object_id: str
    outcome: DeliveryOutcome
    attempts: int
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.outcome is DeliveryOutcome.SUCCESS


@dataclass
class DeliveryReport:
    """Per-driver results of a dispatch call."""

    results: list[DriverResult] = field(default_factory=list)

    @property
    def delivered(self) -> list[DriverResult]:
        return [r for r in self.results if r.delivered]

    @property
    def failed(self) -> list[DriverResult]:
        return [r for r in self.results if not r.delivered]

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: "DeliveryReport") -> "DeliveryReport":
        return DeliveryReport(results=[*self.results, *other.results])


class DeliveryDispatcher:
    """Delivers events and digests to configured drivers."""

    def __init__(
        self,
        drivers: Mapping[str, Driver],
        dead_letter: DeadLetterSink | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._drivers = dict(drivers)
        self._dead_letter = dead_letter or LoggingDeadLetterSink()
        self._retry = retry or RetryPolicy()

    @property
    def drivers(self) -> Mapping[str, Driver]:
        return self._drivers

    def _select(self, driver_names: Iterable[str] | None) -> list[Driver]:
        if driver_names is None:
            return list(self._drivers.values())
        names = list(driver_names)
        unknown = [name for name in names if name not in self._drivers]
        if unknown:
            raise ValidationError(
                f"Unknown drivers: {', '.join(sorted(unknown))}", field="drivers"
            )
        return [self._drivers[name] for name in names]

    async def dispatch(
        self,
        objects: Sequence[Deliverable],
        driver_names: Iterable[str] | None = None,
    ) -> DeliveryReport:
        """Deliver every object to every selected driver.

        Args:
            objects: Events or digests
            driver_names: Drivers to use; None means all drivers

        Returns:
            Report with one result per (object, driver)
        """
        drivers = self._select(driver_names)
        if not objects or not drivers:
            return DeliveryReport()

        results = await asyncio.gather(
            *(self._deliver_one(driver, obj) for obj in objects for driver in drivers)
        )
        report = DeliveryReport(results=list(results))

        if report.failed:
            logger.warning(
                "dispatch_completed_with_failures",
                object_count=len(objects),
                failed=len(report.failed),
                delivered=len(report.delivered),
            )
        return report

    async def _deliver_one(self, driver: Driver, obj: Deliverable) -> DriverResult:
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry.max_attempts),
                wait=wait_exponential(
                    multiplier=self._retry.base_delay_seconds,
                    max=self._retry.max_delay_seconds,
                ),
                retry=retry_if_exception_type(RetryableDeliveryError),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    await self._attempt(driver, obj)
        except DriverDeliveryError as e:
            return await self._fail(driver, obj, e, attempts)

        return DriverResult(
            driver=driver.name,
            object_id=str(obj.id),
            outcome=DeliveryOutcome.SUCCESS,
            attempts=attempts,
        )

    async def _attempt(self, driver: Driver, obj: Deliverable) -> None:
        try:
            outcome = await driver.deliver(obj)
        except DriverDeliveryError as e:
            outcome = DeliveryOutcome.RETRYABLE if e.retryable else DeliveryOutcome.PERMANENT
            DELIVERY_ATTEMPTS.labels(driver=driver.name, outcome=outcome.value).inc()
            raise
        except Exception as e:
            DELIVERY_ATTEMPTS.labels(
                driver=driver.name, outcome=DeliveryOutcome.PERMANENT.value
            ).inc()
            raise PermanentDeliveryError(
                driver.name, f"unexpected error: {e}", cause=e
            ) from e

        DELIVERY_ATTEMPTS.labels(driver=driver.name, outcome=outcome.value).inc()
        if outcome is DeliveryOutcome.RETRYABLE:
            logger.debug("delivery_retryable", driver=driver.name, object_id=str(obj.id))
            raise RetryableDeliveryError(driver.name, "retryable failure")
        if outcome is DeliveryOutcome.PERMANENT:
            raise PermanentDeliveryError(driver.name, "permanent failure")

    async def _fail(
        self,
        driver: Driver,
        obj: Deliverable,
        error: DriverDeliveryError,
        attempts: int,
    ) -> DriverResult:
        outcome = DeliveryOutcome.RETRYABLE if error.retryable else DeliveryOutcome.PERMANENT
        reason = "retries exhausted" if error.retryable else error.message
        logger.error(
            "driver_delivery_failed",
            driver=driver.name,
            object_id=str(obj.id),
            kind=object_kind(obj),
            attempts=attempts,
            retryable=error.retryable,
            error=error.message,
        )

        DEAD_LETTERS.labels(driver=driver.name).inc()
        letter = DeadLetter(
            driver=driver.name,
            object_id=str(obj.id),
            kind=object_kind(obj),
            payload=obj.to_wire(),
            reason=reason,
            attempts=attempts,
            retryable=error.retryable,
        )
        try:
            await self._dead_letter.put(letter)
        except Exception as e:
            # Reported below via the result; one sink failure must not stop the fan-out
            logger.error(
                "dead_letter_failed",
                driver=driver.name,
                object_id=str(obj.id),
                error=str(e),
                exc_info=True,
            )

        return DriverResult(
            driver=driver.name,
            object_id=str(obj.id),
            outcome=outcome,
            attempts=attempts,
            error=error.message,
        )

    async def close(self) -> None:
        """Close every driver."""
        for driver in self._drivers.values():
            await driver.close()
