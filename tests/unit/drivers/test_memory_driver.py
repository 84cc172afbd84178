"""Tests for InMemoryDriver."""

from chronicle.digest import merge_run
from chronicle.drivers import DeliveryOutcome, InMemoryDriver
from tests.factories import EventFactory


class TestInMemoryDriver:
    """Tests for the in-memory storage driver."""

    async def test_stores_wire_record(self) -> None:
        driver = InMemoryDriver()
        event = EventFactory.update(status=("a", "b"))

        outcome = await driver.deliver(event)

        assert outcome is DeliveryOutcome.SUCCESS
        record = driver.get(str(event.id))
        assert record is not None
        assert record["kind"] == "event"
        assert record["eventType"] == "update"

    async def test_digest_kind(self) -> None:
        driver = InMemoryDriver()
        digest = merge_run([EventFactory.update(status=("a", "b"))])

        await driver.deliver(digest)

        assert driver.get(str(digest.id))["kind"] == "digest"

    async def test_redelivery_is_noop(self) -> None:
        """Delivering the same id twice stores one record."""
        driver = InMemoryDriver()
        event = EventFactory.create()

        await driver.deliver(event)
        outcome = await driver.deliver(event)

        assert outcome is DeliveryOutcome.SUCCESS
        assert len(driver.records) == 1
        assert driver.duplicates == 1

    async def test_redelivered_digest_from_retry_is_noop(self) -> None:
        """A digest rebuilt from the same events has the same id."""
        driver = InMemoryDriver()
        run = [
            EventFactory.update(0, status=("a", "b")),
            EventFactory.update(1, status=("b", "c")),
        ]

        await driver.deliver(merge_run(run))
        await driver.deliver(merge_run(run))

        assert len(driver.records) == 1

    async def test_clear(self) -> None:
        driver = InMemoryDriver(name="mem")
        await driver.deliver(EventFactory.create())
        driver.clear()

        assert driver.records == []
        assert driver.duplicates == 0
        assert driver.name == "mem"
