"""Test factories for creating test data."""

from tests.factories.events import BASE_TIME, ChangeFactory, EventFactory

__all__ = [
    "BASE_TIME",
    "ChangeFactory",
    "EventFactory",
]
