"""Prometheus metrics for the audit pipeline."""

from prometheus_client import Counter, Histogram

# Transformer / router
EVENTS_TRANSFORMED = Counter(
    "chronicle_events_transformed_total",
    "Total number of events produced by the transformer",
    labelnames=["event_type"],
)

UNCHANGED_FIELDS = Counter(
    "chronicle_unchanged_fields_total",
    "Update attributes published with identical old and new values",
    labelnames=["event_type"],
)

ROUTING_FAILURES = Counter(
    "chronicle_routing_failures_total",
    "Events that matched no branch",
    labelnames=["event_type"],
)

# Digest engine
DIGESTS_EMITTED = Counter(
    "chronicle_digests_emitted_total",
    "Digests emitted by the digest engine",
    labelnames=["event_type", "kind"],
)

DIGESTS_TRUNCATED = Counter(
    "chronicle_digests_truncated_total",
    "Digests whose merged fields exceeded the configured limit",
    labelnames=["event_type"],
)

TICKS = Counter(
    "chronicle_digest_ticks_total",
    "Digest ticks by outcome",
    labelnames=["status"],
)

TICK_LATENCY = Histogram(
    "chronicle_digest_tick_seconds",
    "Digest tick duration in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Delivery
DELIVERY_ATTEMPTS = Counter(
    "chronicle_delivery_attempts_total",
    "Delivery attempts per driver and outcome",
    labelnames=["driver", "outcome"],
)

DEAD_LETTERS = Counter(
    "chronicle_dead_letters_total",
    "Objects moved to the dead-letter target",
    labelnames=["driver"],
)
