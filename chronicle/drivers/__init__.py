"""Storage drivers, dead-letter sinks and the fan-out dispatcher."""

from chronicle.drivers.base import Deliverable, DeliveryOutcome, Driver
from chronicle.drivers.deadletter import (
    DeadLetter,
    DeadLetterSink,
    InMemoryDeadLetterSink,
    LoggingDeadLetterSink,
)
from chronicle.drivers.dispatcher import (
    DeliveryDispatcher,
    DeliveryReport,
    DriverResult,
    RetryPolicy,
)
from chronicle.drivers.memory import InMemoryDriver
from chronicle.drivers.webhook import WebhookDriver

__all__ = [
    "DeadLetter",
    "DeadLetterSink",
    "Deliverable",
    "DeliveryDispatcher",
    "DeliveryOutcome",
    "DeliveryReport",
    "Driver",
    "DriverResult",
    "InMemoryDeadLetterSink",
    "InMemoryDriver",
    "LoggingDeadLetterSink",
    "RetryPolicy",
    "WebhookDriver",
]
