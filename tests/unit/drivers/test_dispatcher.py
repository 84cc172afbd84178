"""Tests for DeliveryDispatcher.

Tests cover:
- Fan-out to every selected driver
- Retry with backoff for retryable failures
- Dead-lettering after permanent failure or exhausted retries
- Isolation between drivers
"""

import pytest

from chronicle.drivers import (
    Deliverable,
    DeliveryDispatcher,
    DeliveryOutcome,
    DeliveryReport,
    Driver,
    DriverResult,
    InMemoryDeadLetterSink,
    InMemoryDriver,
    RetryPolicy,
)
from chronicle.drivers.deadletter import DeadLetter, DeadLetterSink
from chronicle.errors import PermanentDeliveryError, RetryableDeliveryError, ValidationError
from tests.factories import EventFactory

NO_WAIT = RetryPolicy(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0)


class ScriptedDriver(Driver):
    """Driver that replays a fixed sequence of outcomes or exceptions."""

    def __init__(self, name: str, script: list[DeliveryOutcome | Exception]) -> None:
        super().__init__(name)
        self._script = list(script)
        self.calls = 0
        self.closed = False

    async def deliver(self, obj: Deliverable) -> DeliveryOutcome:
        self.calls += 1
        step = self._script.pop(0) if self._script else DeliveryOutcome.SUCCESS
        if isinstance(step, Exception):
            raise step
        return step

    async def close(self) -> None:
        self.closed = True


class BrokenDeadLetterSink(DeadLetterSink):
    async def put(self, letter: DeadLetter) -> None:
        raise RuntimeError("dead-letter store down")


@pytest.fixture
def dead_letters() -> InMemoryDeadLetterSink:
    return InMemoryDeadLetterSink()


# =============================================================================
# Tests: fan-out
# =============================================================================


class TestFanOut:
    """Tests for delivering to several drivers."""

    async def test_delivers_to_all_drivers(self, dead_letters) -> None:
        a, b = InMemoryDriver("a"), InMemoryDriver("b")
        dispatcher = DeliveryDispatcher({"a": a, "b": b}, dead_letter=dead_letters, retry=NO_WAIT)
        events = [EventFactory.create(), EventFactory.create(minutes=1)]

        report = await dispatcher.dispatch(events)

        assert report.ok
        assert len(report.results) == 4
        assert len(a.records) == len(b.records) == 2

    async def test_selects_named_drivers(self, dead_letters) -> None:
        a, b = InMemoryDriver("a"), InMemoryDriver("b")
        dispatcher = DeliveryDispatcher({"a": a, "b": b}, dead_letter=dead_letters, retry=NO_WAIT)

        await dispatcher.dispatch([EventFactory.create()], driver_names=["b"])

        assert a.records == []
        assert len(b.records) == 1

    async def test_unknown_driver_rejected(self) -> None:
        dispatcher = DeliveryDispatcher({"a": InMemoryDriver("a")})
        with pytest.raises(ValidationError):
            await dispatcher.dispatch([EventFactory.create()], driver_names=["missing"])

    async def test_nothing_to_deliver(self) -> None:
        dispatcher = DeliveryDispatcher({"a": InMemoryDriver("a")})
        report = await dispatcher.dispatch([])
        assert report.results == []
        assert report.ok

    async def test_failing_driver_does_not_block_siblings(self, dead_letters) -> None:
        good = InMemoryDriver("good")
        bad = ScriptedDriver("bad", [DeliveryOutcome.PERMANENT])
        dispatcher = DeliveryDispatcher({"good": good, "bad": bad}, dead_letter=dead_letters, retry=NO_WAIT)

        report = await dispatcher.dispatch([EventFactory.create()])

        assert len(good.records) == 1
        assert [r.driver for r in report.delivered] == ["good"]
        assert [r.driver for r in report.failed] == ["bad"]
        assert not report.ok


# =============================================================================
# Tests: retries and dead letters
# =============================================================================


class TestRetries:
    """Tests for retry and dead-letter behavior."""

    async def test_retryable_then_success(self, dead_letters) -> None:
        driver = ScriptedDriver("flaky", [DeliveryOutcome.RETRYABLE, DeliveryOutcome.RETRYABLE])
        dispatcher = DeliveryDispatcher({"flaky": driver}, dead_letter=dead_letters, retry=NO_WAIT)

        report = await dispatcher.dispatch([EventFactory.create()])

        assert report.ok
        assert report.results[0].attempts == 3
        assert driver.calls == 3
        assert dead_letters.letters == []

    async def test_retryable_exception_is_retried(self, dead_letters) -> None:
        driver = ScriptedDriver("flaky", [RetryableDeliveryError("flaky", "busy")])
        dispatcher = DeliveryDispatcher({"flaky": driver}, dead_letter=dead_letters, retry=NO_WAIT)

        report = await dispatcher.dispatch([EventFactory.create()])

        assert report.ok
        assert driver.calls == 2

    async def test_retries_exhausted(self, dead_letters) -> None:
        driver = ScriptedDriver("down", [DeliveryOutcome.RETRYABLE] * 5)
        dispatcher = DeliveryDispatcher({"down": driver}, dead_letter=dead_letters, retry=NO_WAIT)
        event = EventFactory.create()

        report = await dispatcher.dispatch([event])

        result = report.results[0]
        assert result.outcome is DeliveryOutcome.RETRYABLE
        assert result.attempts == 3
        assert driver.calls == 3

        [letter] = dead_letters.letters
        assert letter.driver == "down"
        assert letter.object_id == str(event.id)
        assert letter.kind == "event"
        assert letter.retryable is True
        assert letter.reason == "retries exhausted"
        assert letter.payload["id"] == str(event.id)

    async def test_permanent_failure_not_retried(self, dead_letters) -> None:
        driver = ScriptedDriver("strict", [PermanentDeliveryError("strict", "schema mismatch")])
        dispatcher = DeliveryDispatcher({"strict": driver}, dead_letter=dead_letters, retry=NO_WAIT)

        report = await dispatcher.dispatch([EventFactory.create()])

        assert report.results[0].outcome is DeliveryOutcome.PERMANENT
        assert driver.calls == 1
        assert dead_letters.letters[0].retryable is False
        assert "schema mismatch" in dead_letters.letters[0].reason

    async def test_unexpected_exception_is_permanent(self, dead_letters) -> None:
        driver = ScriptedDriver("buggy", [KeyError("oops")])
        dispatcher = DeliveryDispatcher({"buggy": driver}, dead_letter=dead_letters, retry=NO_WAIT)

        report = await dispatcher.dispatch([EventFactory.create()])

        assert report.results[0].outcome is DeliveryOutcome.PERMANENT
        assert driver.calls == 1
        assert len(dead_letters.letters) == 1

    async def test_dead_letter_sink_failure_is_reported(self) -> None:
        driver = ScriptedDriver("strict", [DeliveryOutcome.PERMANENT])
        dispatcher = DeliveryDispatcher(
            {"strict": driver}, dead_letter=BrokenDeadLetterSink(), retry=NO_WAIT
        )

        report = await dispatcher.dispatch([EventFactory.create()])

        assert not report.ok


class TestDeliveryReport:
    """Tests for DeliveryReport."""

    def test_merge(self) -> None:
        a = DeliveryReport([DriverResult("a", "1", DeliveryOutcome.SUCCESS, 1)])
        b = DeliveryReport([DriverResult("b", "1", DeliveryOutcome.PERMANENT, 1, "no")])

        merged = a.merge(b)

        assert len(merged.results) == 2
        assert not merged.ok


async def test_close_closes_every_driver() -> None:
    a, b = ScriptedDriver("a", []), ScriptedDriver("b", [])
    dispatcher = DeliveryDispatcher({"a": a, "b": b})

    await dispatcher.close()

    assert a.closed and b.closed
