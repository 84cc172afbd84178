"""Change records published by applications.

A change is not yet in canonical form; the transformer validates the
field shapes against the event type and builds events from it.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chronicle.models.references import ActorRef, ResourceRef
from chronicle.models.rules import RuleOverride


class Change(BaseModel):
    """Application-originated fact about something that happened."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    event_type: str = Field(..., description="Built-in or custom type name")
    custom: bool = Field(
        default=False, description="True when event_type names a custom type"
    )
    resource: ResourceRef
    related_resources: list[ResourceRef] = Field(
        default_factory=list,
        description="Additional resources receiving the same event",
    )
    actor: ActorRef | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime | None = Field(
        default=None, description="When the change happened (UTC); defaults to now"
    )
    rule_overrides: RuleOverride | None = None
