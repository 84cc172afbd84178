"""Event and digest objects.

Both are immutable once created. A digest is structurally an event plus
the span it covers (``start_date`` to ``date``), the number of merged
events, and a truncation flag.
"""

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Annotated, Any, Union
from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

from pydantic import (
    AfterValidator,
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    field_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from chronicle.models.event_types import EventType
from chronicle.models.references import ActorRef, ResourceRef, actor_key
from chronicle.models.rules import EventRule

AtomicValue = Union[str, int, float, bool, None]

ATOMIC_TYPES: tuple[type, ...] = (str, int, float, bool, type(None))

DIGEST_NAMESPACE = uuid5(NAMESPACE_URL, "chronicle:digest")

GroupingKey = tuple[str, str | None]


def is_atomic(value: Any) -> bool:
    return isinstance(value, ATOMIC_TYPES)


class FieldChange(BaseModel):
    """Old/new pair for an updated attribute."""

    model_config = ConfigDict(frozen=True)

    old: AtomicValue = None
    new: AtomicValue = None

    @property
    def unchanged(self) -> bool:
        return self.old == self.new


FieldValue = Union[FieldChange, AtomicValue]


def _read_only(fields: Mapping[str, FieldValue]) -> Mapping[str, FieldValue]:
    return MappingProxyType(dict(fields))


# Copied on validation, so neither the caller's dict nor the record can change
FieldMap = Annotated[Mapping[str, FieldValue], AfterValidator(_read_only)]

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


class _AuditRecord(BaseModel):
    """Fields shared by events and digests."""

    model_config = _MODEL_CONFIG

    event_type: EventType
    tags: frozenset[str] = Field(default_factory=frozenset)
    resource: ResourceRef
    actor: ActorRef | None = None
    fields: FieldMap = Field(default_factory=dict, validate_default=True)
    rule: EventRule

    @property
    def grouping_key(self) -> GroupingKey:
        return (self.resource.id, actor_key(self.actor))

    @field_serializer("event_type")
    def _serialize_event_type(self, event_type: EventType) -> str:
        return event_type.name

    @field_serializer("tags")
    def _serialize_tags(self, tags: frozenset[str]) -> list[str]:
        return sorted(tags)

    @field_serializer("fields")
    def _serialize_fields(self, fields: Mapping[str, FieldValue]) -> dict[str, FieldValue]:
        return dict(fields)

    def to_wire(self) -> dict[str, Any]:
        """Portable JSON-shaped representation handed to drivers."""
        return self.model_dump(mode="json", by_alias=True)


class Event(_AuditRecord):
    """Canonical, immutable audit record derived from a change."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: AwareDatetime

    @property
    def digestible(self) -> bool:
        return self.rule.digestible


class Digest(_AuditRecord):
    """Merged view of one or more contiguous related events.

    A digest with ``count == 1`` is a passthrough of a single event.
    """

    id: UUID
    date: AwareDatetime
    start_date: AwareDatetime
    count: PositiveInt
    truncated: bool = False
    event_ids: tuple[UUID, ...]

    @model_validator(mode="after")
    def _check_span(self) -> "Digest":
        if self.start_date > self.date:
            raise ValueError("start_date must not be after date")
        if self.count != len(self.event_ids):
            raise ValueError("count must equal the number of constituent events")
        return self

    @property
    def passthrough(self) -> bool:
        return self.count == 1


def digest_id(
    grouping_key: GroupingKey,
    event_type: EventType,
    start_date: datetime,
    count: int,
    first_event_id: UUID,
) -> UUID:
    """Stable identifier for a digest.

    The same constituent events always produce the same id, which lets
    drivers deduplicate redelivered digests.
    """
    resource_id, actor_id = grouping_key
    parts = [
        f"resource={resource_id}",
        "actor=-" if actor_id is None else f"actor={actor_id}",
        f"type={event_type.name}",
        f"start={start_date.isoformat()}",
        f"count={count}",
        f"first={first_event_id}",
    ]
    return uuid5(DIGEST_NAMESPACE, "|".join(parts))
