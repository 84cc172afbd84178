"""Driver interface.

A driver delivers events and digests to one storage backend. Drivers
must treat redelivery of the same object id as a no-op.
"""

from abc import ABC, abstractmethod
from enum import Enum

from chronicle.models import Digest, Event

Deliverable = Event | Digest


class DeliveryOutcome(str, Enum):
    """Result of a single delivery attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


def object_kind(obj: Deliverable) -> str:
    return "digest" if isinstance(obj, Digest) else "event"


class Driver(ABC):
    """Abstract storage backend."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def deliver(self, obj: Deliverable) -> DeliveryOutcome:
        """Deliver one object.

        Drivers may also raise DriverDeliveryError subclasses instead of
        returning a failure outcome.
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
