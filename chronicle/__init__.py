"""Chronicle: change notifications to durable, digested audit records.

Changes published by an application are transformed into immutable
events, routed to digest or direct branches, merged into digests on a
fixed tick, and delivered to one or more storage drivers.
"""

__version__ = "0.1.0"
