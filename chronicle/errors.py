"""Error hierarchy for the audit pipeline.

Transformer and router errors are raised synchronously to the caller.
Digest tick errors abort the whole tick. Delivery errors are isolated per
driver and end up in the dead-letter path once retries are exhausted.
"""


class ChronicleError(Exception):
    """Base exception for all chronicle errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(ChronicleError):
    """Raised when a change is malformed.

    Examples:
        - `update` field without an old/new pair
        - unknown built-in event type
        - naive timestamp
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.field = field


class ReservedNameError(ChronicleError):
    """Raised when a custom event type collides with a reserved name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Event type name is reserved: {name!r}")
        self.name = name


class RoutingError(ChronicleError):
    """Raised when no branch accepts an event."""

    def __init__(self, event_id: str, event_type: str, tags: frozenset[str]) -> None:
        super().__init__(
            f"No branch matches event {event_id} "
            f"(type={event_type}, tags={sorted(tags)})"
        )
        self.event_id = event_id
        self.event_type = event_type
        self.tags = tags


class DigestTickError(ChronicleError):
    """Raised when a digest tick aborts before committing.

    Nothing from the aborted tick was emitted and no queued event was
    acknowledged, so the next tick retries the whole batch.
    """

    def __init__(
        self, tick_id: str, message: str, cause: Exception | None = None
    ) -> None:
        super().__init__(f"Digest tick {tick_id} aborted: {message}", cause=cause)
        self.tick_id = tick_id


class DriverDeliveryError(ChronicleError):
    """Raised by a driver when an object could not be delivered."""

    retryable: bool = False

    def __init__(
        self,
        driver: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(f"[{driver}] {message}", cause=cause)
        self.driver = driver


class RetryableDeliveryError(DriverDeliveryError):
    """Transient failure; the dispatcher retries with backoff."""

    retryable = True


class PermanentDeliveryError(DriverDeliveryError):
    """Failure that will not succeed on retry; goes to dead-letter."""

    retryable = False
