"""Digest engine, queue collaborator, tick lock and scheduler."""

from chronicle.digest.engine import DigestEngine, build_runs, merge_fields, merge_run, partition
from chronicle.digest.lock import InMemoryTickLock, RedisTickLock, TickLock
from chronicle.digest.queue import EventQueue, InMemoryEventQueue
from chronicle.digest.scheduler import DigestScheduler, TickResult, TickStatus

__all__ = [
    "DigestEngine",
    "DigestScheduler",
    "EventQueue",
    "InMemoryEventQueue",
    "InMemoryTickLock",
    "RedisTickLock",
    "TickLock",
    "TickResult",
    "TickStatus",
    "build_runs",
    "merge_fields",
    "merge_run",
    "partition",
]
