"""Event rules and the read-only rule set.

Rules are resolved once, when an event is created, by layering:

1. System default
2. Per-stream entry for the event type (the configured rule set)
3. Call-site override carried on the change

`create` and `delete` are forced non-digestible after layering.
"""

import re
from collections.abc import Iterator, Mapping
from datetime import timedelta
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PositiveInt,
)
from pydantic.alias_generators import to_camel

from chronicle.models.event_types import EventType

DEFAULT_DIGEST_WINDOW = timedelta(minutes=5)
DEFAULT_DIGEST_FIELDS_LIMIT = 50

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)\s*$")
_DURATION_UNITS = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_duration(value: Any) -> Any:
    """Accept shorthand durations ("30s", "5m", "2h", "1d").

    Other inputs (timedelta, seconds as a number, ISO-8601 strings) are
    left for pydantic's own timedelta parsing.
    """
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if match:
            amount, unit = match.groups()
            return timedelta(**{_DURATION_UNITS[unit]: float(amount)})
    return value


def _positive_duration(value: timedelta) -> timedelta:
    if value <= timedelta(0):
        raise ValueError("duration must be positive")
    return value


Duration = Annotated[
    timedelta,
    BeforeValidator(parse_duration),
    AfterValidator(_positive_duration),
]


class EventRule(BaseModel):
    """Per-event-type policy."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    sync: bool = False
    digestible: bool = False
    digest_window: Duration = DEFAULT_DIGEST_WINDOW
    digest_fields_limit: PositiveInt = DEFAULT_DIGEST_FIELDS_LIMIT


SYSTEM_DEFAULT_RULE = EventRule()


class RuleOverride(BaseModel):
    """Partial rule; unset options fall through to the layer below."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    sync: bool | None = None
    digestible: bool | None = None
    digest_window: Duration | None = None
    digest_fields_limit: PositiveInt | None = None

    def apply(self, rule: EventRule) -> EventRule:
        """Return a new rule with this override's options on top."""
        updates = self.model_dump(exclude_none=True)
        if not updates:
            return rule
        return rule.model_copy(update=updates)


class EventRuleSet(Mapping[str, EventRule]):
    """Read-only mapping of event type name to its per-stream rule.

    Entries are layered over the system default at construction so lookups
    never re-merge.
    """

    def __init__(
        self,
        rules: Mapping[str, RuleOverride | EventRule | Mapping[str, Any]] | None = None,
        default: EventRule = SYSTEM_DEFAULT_RULE,
    ) -> None:
        resolved: dict[str, EventRule] = {}
        for name, entry in (rules or {}).items():
            resolved[name] = _as_override(entry).apply(default)
        self._default = default
        self._rules = MappingProxyType(resolved)

    def __getitem__(self, name: str) -> EventRule:
        return self._rules[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def default(self) -> EventRule:
        return self._default

    def resolve(
        self,
        event_type: EventType,
        override: RuleOverride | None = None,
    ) -> EventRule:
        """Resolve the effective rule for an event being created.

        Args:
            event_type: Type of the event
            override: Call-site override from the change, if any

        Returns:
            Frozen rule to attach to the event
        """
        rule = self._rules.get(event_type.name, self._default)
        if override is not None:
            rule = override.apply(rule)
        if event_type.always_non_digestible and rule.digestible:
            rule = rule.model_copy(update={"digestible": False})
        return rule


def _as_override(entry: RuleOverride | EventRule | Mapping[str, Any]) -> RuleOverride:
    if isinstance(entry, RuleOverride):
        return entry
    if isinstance(entry, EventRule):
        return RuleOverride(**entry.model_dump())
    return RuleOverride.model_validate(dict(entry))
