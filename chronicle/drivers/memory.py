"""In-memory driver."""

from typing import Any

from chronicle.drivers.base import Deliverable, DeliveryOutcome, Driver, object_kind
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


class InMemoryDriver(Driver):
    """Stores wire records keyed by object id, for testing and development.

    Redelivering an id is counted but never stored twice.
    """

    def __init__(self, name: str = "memory") -> None:
        super().__init__(name)
        self._records: dict[str, dict[str, Any]] = {}
        self._duplicates = 0

    async def deliver(self, obj: Deliverable) -> DeliveryOutcome:
        key = str(obj.id)
        if key in self._records:
            self._duplicates += 1
            logger.debug("duplicate_delivery_ignored", driver=self.name, object_id=key)
            return DeliveryOutcome.SUCCESS

        record = obj.to_wire()
        record["kind"] = object_kind(obj)
        self._records[key] = record
        return DeliveryOutcome.SUCCESS

    @property
    def records(self) -> list[dict[str, Any]]:
        return list(self._records.values())

    @property
    def duplicates(self) -> int:
        return self._duplicates

    def get(self, object_id: str) -> dict[str, Any] | None:
        return self._records.get(object_id)

    def clear(self) -> None:
        """Clear all stored records (test utility)."""
        self._records.clear()
        self._duplicates = 0
