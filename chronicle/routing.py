"""Router: events to destination branches.

A branch is either the digest path (events are queued for the next tick)
or a direct path (events go straight to drivers). Routing is a pure
function of the event's tags and its rule's digestible flag.
"""

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chronicle.errors import RoutingError, ValidationError
from chronicle.models import Event
from chronicle.observability.logging import get_logger
from chronicle.observability.metrics import ROUTING_FAILURES

logger = get_logger(__name__)


class BranchKind(str, Enum):
    """Where a branch sends accepted events."""

    DIGEST = "digest"
    DIRECT = "direct"


class Branch(BaseModel):
    """Routing table entry."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    kind: BranchKind = BranchKind.DIRECT
    tags: frozenset[str] = Field(
        default_factory=lambda: frozenset({"*"}),
        description='Tag filter. "*" matches any event, "audit.*" matches a prefix',
    )
    digestible: bool | None = Field(
        default=None,
        description="Only accept events whose rule matches; None accepts both",
    )
    drivers: tuple[str, ...] = Field(
        default=(), description="Drivers this branch delivers to; empty means all"
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: object) -> object:
        if isinstance(value, str):
            return frozenset({value})
        return value

    def matches_tags(self, event: Event) -> bool:
        """Check the tag filter alone."""
        if "*" in self.tags:
            return True
        return any(matches_tag(tag, self.tags) for tag in event.tags)

    def accepts(self, event: Event) -> bool:
        """Check if this branch should receive the event."""
        if self.digestible is not None and event.digestible != self.digestible:
            return False
        return self.matches_tags(event)


def matches_tag(tag: str, patterns: Iterable[str]) -> bool:
    """Check if a tag matches any pattern.

    Patterns:
    - "*" matches every tag
    - "category.*" matches tags in that category ("audit.user", "audit.order")
    - anything else is an exact match
    """
    for pattern in patterns:
        if pattern == "*" or pattern == tag:
            return True
        if pattern.endswith(".*") and tag.startswith(pattern[:-1]):
            return True
    return False


class Router:
    """Selects destination branches for events.

    The branch table is fixed at construction. Routing holds no mutable
    state, so it is safe to call concurrently.
    """

    def __init__(self, branches: Iterable[Branch]) -> None:
        self._branches = tuple(branches)
        names = [branch.name for branch in self._branches]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate branch names: {', '.join(duplicates)}", field="branches"
            )
        self._by_name = {branch.name: branch for branch in self._branches}

    @property
    def branches(self) -> tuple[Branch, ...]:
        return self._branches

    def get(self, name: str) -> Branch:
        return self._by_name[name]

    def route(self, event: Event) -> frozenset[str]:
        """Return the names of all branches accepting the event.

        Raises:
            RoutingError: No branch accepts the event
        """
        destinations = frozenset(
            branch.name for branch in self._branches if branch.accepts(event)
        )
        if not destinations:
            ROUTING_FAILURES.labels(event_type=event.event_type.name).inc()
            logger.warning(
                "event_unroutable",
                event_id=str(event.id),
                event_type=event.event_type.name,
                tags=sorted(event.tags),
            )
            raise RoutingError(str(event.id), event.event_type.name, event.tags)
        return destinations

    def split(self, event: Event) -> tuple[list[Branch], list[Branch]]:
        """Route an event and split the result into digest and direct branches."""
        destinations = self.route(event)
        digest = [b for b in self._branches if b.name in destinations and b.kind == BranchKind.DIGEST]
        direct = [b for b in self._branches if b.name in destinations and b.kind == BranchKind.DIRECT]
        return digest, direct

    def barriers(self, event: Event) -> list[Branch]:
        """Digest branches that must see a non-digestible event as a run barrier.

        These are digest branches whose tag filter matches but whose
        digestible filter turned the event away. The event is queued there
        only to split runs; the branch never emits it.
        """
        if event.digestible:
            return []
        return [
            branch
            for branch in self._branches
            if branch.kind == BranchKind.DIGEST
            and not branch.accepts(event)
            and branch.matches_tags(event)
        ]
