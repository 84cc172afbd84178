"""Audit domain models.

Contains the pydantic models flowing through the pipeline:
- Change as published by applications
- Event and Digest as produced by the transformer and digest engine
- EventRule / EventRuleSet policies
"""

from chronicle.models.change import Change
from chronicle.models.event import (
    AtomicValue,
    Digest,
    Event,
    FieldChange,
    FieldValue,
    GroupingKey,
    digest_id,
    is_atomic,
)
from chronicle.models.event_types import (
    CREATE,
    DELETE,
    UPDATE,
    BuiltinEventType,
    EventType,
    EventTypeRegistry,
)
from chronicle.models.references import ActorRef, ResourceRef, actor_key
from chronicle.models.rules import (
    SYSTEM_DEFAULT_RULE,
    EventRule,
    EventRuleSet,
    RuleOverride,
)

__all__ = [
    "ActorRef",
    "AtomicValue",
    "BuiltinEventType",
    "CREATE",
    "Change",
    "DELETE",
    "Digest",
    "Event",
    "EventRule",
    "EventRuleSet",
    "EventType",
    "EventTypeRegistry",
    "FieldChange",
    "FieldValue",
    "GroupingKey",
    "ResourceRef",
    "RuleOverride",
    "SYSTEM_DEFAULT_RULE",
    "UPDATE",
    "actor_key",
    "digest_id",
    "is_atomic",
]
