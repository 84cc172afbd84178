"""Dead-letter targets for objects a driver could not accept."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeadLetter:
    """An object that exhausted its retries or failed permanently on one driver."""

    driver: str
    object_id: str
    kind: str
    payload: dict[str, Any]
    reason: str
    attempts: int
    retryable: bool
    failed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class DeadLetterSink(ABC):
    """Operator-visible destination for undeliverable objects."""

    @abstractmethod
    async def put(self, letter: DeadLetter) -> None:
        pass


class InMemoryDeadLetterSink(DeadLetterSink):
    """Keeps dead letters in a list (testing and inspection)."""

    def __init__(self) -> None:
        self.letters: list[DeadLetter] = []

    async def put(self, letter: DeadLetter) -> None:
        self.letters.append(letter)


class LoggingDeadLetterSink(DeadLetterSink):
    """Reports dead letters through the error log only."""

    async def put(self, letter: DeadLetter) -> None:
        logger.error(
            "dead_letter",
            driver=letter.driver,
            object_id=letter.object_id,
            kind=letter.kind,
            reason=letter.reason,
            attempts=letter.attempts,
            retryable=letter.retryable,
        )
