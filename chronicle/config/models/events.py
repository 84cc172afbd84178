"""Event type, rule and routing configuration."""

from pydantic import BaseModel, Field

from chronicle.models.rules import RuleOverride
from chronicle.routing import Branch


class EventTypesConfig(BaseModel):
    """Reserved and custom event type names."""

    system: list[str] = Field(
        default_factory=lambda: ["digest"],
        description="Names reserved for the system besides the built-ins",
    )
    custom: list[str] = Field(
        default_factory=list, description="Custom event types known at startup"
    )
    strict: bool = Field(
        default=False, description="Reject custom types not listed in `custom`"
    )


class RoutingConfig(BaseModel):
    """Tag-to-branch routing table."""

    branches: list[Branch] = Field(default_factory=list)


# Per-stream rule entries keyed by event type name
RulesConfig = dict[str, RuleOverride]
