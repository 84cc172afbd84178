"""Event type variants and the reserved-name registry."""

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from chronicle.errors import ReservedNameError, ValidationError


class BuiltinEventType(str, Enum):
    """Event types every deployment understands."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


# Never digestible, whatever the rule set says
NON_DIGESTIBLE_TYPES: frozenset[BuiltinEventType] = frozenset({
    BuiltinEventType.CREATE,
    BuiltinEventType.DELETE,
})


class EventType(BaseModel):
    """A built-in event type or a registered custom one."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    custom: bool = False

    @classmethod
    def builtin_type(cls, builtin: BuiltinEventType) -> "EventType":
        return cls(name=builtin.value)

    @property
    def builtin(self) -> BuiltinEventType | None:
        if self.custom:
            return None
        return BuiltinEventType(self.name)

    @property
    def is_update(self) -> bool:
        return self.builtin is BuiltinEventType.UPDATE

    @property
    def always_non_digestible(self) -> bool:
        return self.builtin in NON_DIGESTIBLE_TYPES

    def __str__(self) -> str:
        return self.name


CREATE = EventType.builtin_type(BuiltinEventType.CREATE)
UPDATE = EventType.builtin_type(BuiltinEventType.UPDATE)
DELETE = EventType.builtin_type(BuiltinEventType.DELETE)


class EventTypeRegistry:
    """Read-only registry of reserved and custom event type names.

    Built once at startup. Reserved names are the built-ins plus any
    system types the deployment declares (for example ``digest``).
    """

    def __init__(
        self,
        system_types: Iterable[str] = (),
        custom_types: Iterable[str] = (),
        strict: bool = False,
    ) -> None:
        """Initialize registry.

        Args:
            system_types: Extra names reserved for the system
            custom_types: Custom names known up front
            strict: Reject custom names that were not registered

        Raises:
            ReservedNameError: If a custom name collides with a reserved one
        """
        self._reserved = frozenset(b.value for b in BuiltinEventType) | frozenset(
            system_types
        )
        for name in custom_types:
            if name in self._reserved:
                raise ReservedNameError(name)
        self._custom = frozenset(custom_types)
        self._strict = strict

    @property
    def reserved(self) -> frozenset[str]:
        return self._reserved

    @property
    def custom_types(self) -> frozenset[str]:
        return self._custom

    def is_reserved(self, name: str) -> bool:
        return name in self._reserved

    def resolve(self, name: str, custom: bool = False) -> EventType:
        """Resolve a requested name to an EventType.

        Args:
            name: Requested event type name
            custom: Whether the caller is naming a custom type

        Raises:
            ReservedNameError: Custom name collides with a reserved name
            ValidationError: Unknown built-in, or unregistered custom in strict mode
        """
        if not name:
            raise ValidationError("Event type name must not be empty", field="event_type")

        if custom:
            if name in self._reserved:
                raise ReservedNameError(name)
            if self._strict and name not in self._custom:
                raise ValidationError(
                    f"Custom event type is not registered: {name!r}",
                    field="event_type",
                )
            return EventType(name=name, custom=True)

        try:
            return EventType.builtin_type(BuiltinEventType(name))
        except ValueError as e:
            raise ValidationError(
                f"Unknown built-in event type {name!r}; "
                "set custom=True to publish a custom type",
                field="event_type",
                cause=e,
            ) from e
