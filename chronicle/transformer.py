"""Transformer: raw changes to canonical events.

The transformer performs no I/O. Each call only builds new immutable
objects, so one instance can serve many concurrent publishers.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from chronicle.errors import ValidationError
from chronicle.models import (
    Change,
    Event,
    EventRuleSet,
    EventType,
    EventTypeRegistry,
    FieldChange,
    FieldValue,
    is_atomic,
)
from chronicle.observability.logging import get_logger
from chronicle.observability.metrics import EVENTS_TRANSFORMED, UNCHANGED_FIELDS

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class UnchangedFieldWarning:
    """An update attribute whose old value equals its new value."""

    event_id: UUID
    path: str


@dataclass(frozen=True)
class TransformResult:
    """Events built from one change, in order, plus non-fatal warnings."""

    events: tuple[Event, ...]
    warnings: tuple[UnchangedFieldWarning, ...] = ()


class Transformer:
    """Converts changes into events under a rule set."""

    def __init__(
        self,
        rules: EventRuleSet | None = None,
        registry: EventTypeRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize transformer.

        Args:
            rules: Per-stream rule set; empty means the system default applies
            registry: Reserved/custom event type names
            clock: Source of the default timestamp
        """
        self._rules = rules if rules is not None else EventRuleSet()
        self._registry = registry if registry is not None else EventTypeRegistry()
        self._clock = clock

    @property
    def rules(self) -> EventRuleSet:
        return self._rules

    @property
    def registry(self) -> EventTypeRegistry:
        return self._registry

    def transform(self, change: Change | Mapping[str, Any]) -> TransformResult:
        """Build one or more events from a change.

        The primary resource's event comes first, followed by one event per
        related resource in the order given.

        Raises:
            ValidationError: Malformed change
            ReservedNameError: Custom type collides with a reserved name
        """
        change = self._coerce_change(change)
        event_type = self._registry.resolve(change.event_type, custom=change.custom)
        timestamp = self._timestamp(change.timestamp)
        fields = self._normalize_fields(event_type, change.fields)
        rule = self._rules.resolve(event_type, change.rule_overrides)
        tags = frozenset(change.tags)

        events = tuple(
            Event(
                event_type=event_type,
                timestamp=timestamp,
                tags=tags,
                resource=resource,
                actor=change.actor,
                fields=fields,
                rule=rule,
            )
            for resource in (change.resource, *change.related_resources)
        )

        warnings: list[UnchangedFieldWarning] = []
        if event_type.is_update:
            unchanged = [
                path
                for path, value in fields.items()
                if isinstance(value, FieldChange) and value.unchanged
            ]
            for event in events:
                warnings.extend(
                    UnchangedFieldWarning(event_id=event.id, path=path)
                    for path in unchanged
                )
            if unchanged:
                UNCHANGED_FIELDS.labels(event_type=event_type.name).inc(len(unchanged))
                logger.warning(
                    "update_fields_unchanged",
                    event_type=event_type.name,
                    resource_id=change.resource.id,
                    paths=unchanged,
                )

        EVENTS_TRANSFORMED.labels(event_type=event_type.name).inc(len(events))
        logger.debug(
            "change_transformed",
            event_type=event_type.name,
            resource_id=change.resource.id,
            event_count=len(events),
            digestible=rule.digestible,
            tags=sorted(tags),
        )
        return TransformResult(events=events, warnings=tuple(warnings))

    def _coerce_change(self, change: Change | Mapping[str, Any]) -> Change:
        if isinstance(change, Change):
            return change
        try:
            return Change.model_validate(change)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed change: {e}", cause=e) from e

    def _timestamp(self, value: datetime | None) -> datetime:
        if value is None:
            return self._clock()
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValidationError(
                "Change timestamp must be timezone-aware", field="timestamp"
            )
        return value.astimezone(UTC)

    def _normalize_fields(
        self, event_type: EventType, raw: Mapping[str, Any]
    ) -> dict[str, FieldValue]:
        if event_type.is_update and not raw:
            raise ValidationError(
                "An update must change at least one attribute", field="fields"
            )

        fields: dict[str, FieldValue] = {}
        for path, value in raw.items():
            if not isinstance(path, str) or not path:
                raise ValidationError(
                    f"Attribute path must be a non-empty string: {path!r}",
                    field="fields",
                )
            if event_type.is_update:
                fields[path] = _as_field_change(path, value)
            elif event_type.custom:
                fields[path] = _as_custom_value(path, value)
            else:
                fields[path] = _as_atomic(path, value, event_type.name)
        return fields


def _as_field_change(path: str, value: Any) -> FieldChange:
    if isinstance(value, FieldChange):
        return value
    if isinstance(value, Mapping) and set(value) == {"old", "new"}:
        old, new = value["old"], value["new"]
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        old, new = value
    else:
        raise ValidationError(
            f"Update attribute {path!r} needs an old and new value",
            field=path,
        )
    if not (is_atomic(old) and is_atomic(new)):
        raise ValidationError(
            f"Update attribute {path!r} values must be atomic",
            field=path,
        )
    return FieldChange(old=old, new=new)


def _as_atomic(path: str, value: Any, type_name: str) -> FieldValue:
    if not is_atomic(value):
        raise ValidationError(
            f"{type_name} attribute {path!r} must be a single atomic value",
            field=path,
        )
    return value


def _as_custom_value(path: str, value: Any) -> FieldValue:
    if isinstance(value, FieldChange) or (
        isinstance(value, Mapping) and set(value) == {"old", "new"}
    ):
        return _as_field_change(path, value)
    return _as_atomic(path, value, "custom")
