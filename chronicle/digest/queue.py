"""Event queue collaborator for the digest path.

The durable queue belongs to the deployment. The digest scheduler only
needs a snapshot of everything not yet committed, in arrival order, and a
way to acknowledge what a successful tick consumed.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID

from chronicle.models import Event


class EventQueue(ABC):
    """Abstract interface for the digest-branch buffer."""

    @abstractmethod
    async def put(self, events: Iterable[Event]) -> None:
        """Append events in arrival order."""
        pass

    @abstractmethod
    async def pending(self) -> list[Event]:
        """Snapshot of all unacknowledged events in arrival order.

        Does not remove anything; a tick that aborts leaves the queue as
        it found it.
        """
        pass

    @abstractmethod
    async def acknowledge(self, event_ids: Iterable[UUID]) -> int:
        """Remove committed events. Returns how many were removed."""
        pass


class InMemoryEventQueue(EventQueue):
    """In-memory queue for testing and single-process deployments.

    Not durable across restarts.
    """

    def __init__(self) -> None:
        self._events: dict[UUID, Event] = {}

    async def put(self, events: Iterable[Event]) -> None:
        for event in events:
            # dict keeps first insertion order; a re-put keeps its place
            self._events.setdefault(event.id, event)

    async def pending(self) -> list[Event]:
        return list(self._events.values())

    async def acknowledge(self, event_ids: Iterable[UUID]) -> int:
        removed = 0
        for event_id in event_ids:
            if self._events.pop(event_id, None) is not None:
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._events)
