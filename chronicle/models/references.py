"""Resource and actor references.

Both are structurally identical: an immutable id used for equality and a
display name captured at event time. Display names never participate in
grouping.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Reference(BaseModel):
    """Identifies a subject of an audit event."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable identifier")
    name: str = Field(default="", description="Display name snapshot")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, UUID)) and not isinstance(value, bool):
            return str(value)
        return value

    def same_as(self, other: "Reference | None") -> bool:
        """Return True if both references point at the same subject."""
        return other is not None and self.id == other.id


class ResourceRef(Reference):
    """The audited subject."""

    categories: tuple[str, ...] = Field(
        default=(),
        max_length=3,
        description="Up to three free-form category labels",
    )


class ActorRef(Reference):
    """Who caused the event. Absent for automated events."""


def actor_key(actor: ActorRef | None) -> str | None:
    """Grouping identity of an actor.

    A missing actor is the system actor. None never equals a real id, so it
    never merges with events from a named actor.
    """
    return actor.id if actor is not None else None
