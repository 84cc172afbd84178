"""Digest engine: merges contiguous related events into digests.

The algorithm is a pure function of the drained events. It never reads
the wall clock, so a late or skipped tick groups events exactly as an
on-time tick would.

Steps:
1. Partition by grouping key (resource id, actor id)
2. Sort each partition by timestamp, ties kept in arrival order
3. Cut the partition into runs: same type, digestible, and within the
   digest window of the run's first event. Non-digestible events are
   barriers; they are emitted as passthroughs unless the engine is told
   they are delivered elsewhere
4. Merge each run into a digest; truncate merged fields past the limit
"""

from collections.abc import Iterable, Sequence

from chronicle.models import Digest, Event, FieldChange, FieldValue, GroupingKey, digest_id
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


def partition(events: Iterable[Event]) -> dict[GroupingKey, list[Event]]:
    """Group events by (resource id, actor id), keeping arrival order.

    Partitions are ordered by the arrival of their first event.
    """
    partitions: dict[GroupingKey, list[Event]] = {}
    for event in events:
        partitions.setdefault(event.grouping_key, []).append(event)
    return partitions


def build_runs(events: Sequence[Event]) -> list[list[Event]]:
    """Cut a chronologically sorted partition into maximal runs.

    A non-digestible event always forms a run of its own and ends the run
    before it, so it acts as a barrier between runs of the same type.
    """
    runs: list[list[Event]] = []
    current: list[Event] = []

    for event in events:
        if not event.digestible:
            if current:
                runs.append(current)
                current = []
            runs.append([event])
            continue

        if current and _joins_run(current[0], event):
            current.append(event)
            continue

        if current:
            runs.append(current)
        current = [event]

    if current:
        runs.append(current)
    return runs


def _joins_run(first: Event, event: Event) -> bool:
    # Window is anchored to the first event of the run, not the previous one
    return (
        event.event_type == first.event_type
        and event.timestamp - first.timestamp <= first.rule.digest_window
    )


def merge_fields(run: Sequence[Event]) -> dict[str, FieldValue]:
    """Merge the fields of a run.

    Per attribute path: old value from the earliest event touching it, new
    value from the latest. Atomic values take the latest value. Paths keep
    the order in which they first appeared.
    """
    merged: dict[str, FieldValue] = {}
    for event in run:
        for path, value in event.fields.items():
            if path not in merged:
                merged[path] = value
                continue
            existing = merged[path]
            if isinstance(existing, FieldChange) and isinstance(value, FieldChange):
                merged[path] = FieldChange(old=existing.old, new=value.new)
            else:
                merged[path] = value
    return merged


def merge_run(run: Sequence[Event]) -> Digest:
    """Build a digest from a run.

    A run of one event is a passthrough: its fields are carried unchanged
    and never truncated.
    """
    if not run:
        raise ValueError("cannot merge an empty run")

    first, last = run[0], run[-1]
    rule = first.rule

    if len(run) == 1:
        fields = dict(first.fields)
        truncated = False
    else:
        fields = merge_fields(run)
        truncated = len(fields) > rule.digest_fields_limit
        if truncated:
            fields = dict(list(fields.items())[: rule.digest_fields_limit])

    tags: frozenset[str] = frozenset().union(*(event.tags for event in run))

    return Digest(
        id=digest_id(
            first.grouping_key,
            first.event_type,
            first.timestamp,
            len(run),
            first.id,
        ),
        event_type=first.event_type,
        date=last.timestamp,
        start_date=first.timestamp,
        count=len(run),
        tags=tags,
        resource=last.resource,
        actor=last.actor,
        fields=fields,
        truncated=truncated,
        event_ids=tuple(event.id for event in run),
        rule=rule,
    )


class DigestEngine:
    """Turns a drained batch of events into digests."""

    def __init__(self, emit_barriers: bool = True) -> None:
        """Initialize engine.

        Args:
            emit_barriers: Emit non-digestible events as passthrough digests.
                When False they still split runs but produce no output,
                for branches that deliver such events on a direct path.
        """
        self._emit_barriers = emit_barriers

    def build(self, events: Iterable[Event]) -> list[Digest]:
        """Build digests for a batch.

        Args:
            events: Drained events in arrival order

        Returns:
            Digests grouped by partition, chronological within each partition
        """
        digests: list[Digest] = []
        for key, members in partition(events).items():
            ordered = sorted(members, key=lambda e: e.timestamp)
            runs = build_runs(ordered)
            if not self._emit_barriers:
                runs = [run for run in runs if run[0].digestible]
            digests.extend(merge_run(run) for run in runs)
            logger.debug(
                "partition_digested",
                resource_id=key[0],
                actor_id=key[1],
                event_count=len(members),
                digest_count=len(runs),
            )
        return digests
