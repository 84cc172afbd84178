"""Structured logging configuration using structlog.

Provides JSON logging for production and console logging for development,
with automatic context binding and PII redaction.
"""

import re
import sys
from collections.abc import Iterable, MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

# Audit payloads routinely carry user attributes, so field values pass
# through the redactor too.
SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "credentials",
    "email",
    "phone",
    "ssn",
    "credit_card",
    "card_number",
    "private_key",
    "access_token",
    "refresh_token",
    "signature",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?[\d\s\-\(\)]{10,}")
SSN_PATTERN = re.compile(r"\d{3}-\d{2}-\d{4}")


class PIIRedactor:
    """Processor that redacts PII from log events.

    Sensitive key names are replaced outright; string values are scanned
    for e-mail, phone and SSN patterns. Attribute paths such as
    ``billing.iban`` are matched on their last segment, so a deployment can
    name its own sensitive attributes once with ``extra_keys``.
    """

    def __init__(self, extra_keys: Iterable[str] = ()) -> None:
        self._keys = SENSITIVE_KEYS | frozenset(k.lower() for k in extra_keys)

    def is_sensitive(self, key: str) -> bool:
        name = key.lower()
        return name in self._keys or name.rsplit(".", 1)[-1] in self._keys

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact_dict(event_dict))

    def _redact_dict(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive(key):
                result[key] = "[REDACTED]"
            else:
                result[key] = self._redact_value(value)
        return result

    def _redact_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._redact_dict(value)
        if isinstance(value, str):
            return self._redact_string(value)
        if isinstance(value, (list, tuple)):
            return [self._redact_value(item) for item in value]
        return value

    def _redact_string(self, value: str) -> str:
        value = EMAIL_PATTERN.sub("[EMAIL]", value)
        value = PHONE_PATTERN.sub("[PHONE]", value)
        return SSN_PATTERN.sub("[SSN]", value)


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
    redact_keys: Iterable[str] = (),
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        format: Output format - "json" for production, "console" for development
        redact_pii: Whether to redact PII from logs
        redact_keys: Extra sensitive key names or attribute paths
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if redact_pii:
        processors.append(PIIRedactor(extra_keys=redact_keys))

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    level_map = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    level_num = level_map.get(level.upper(), 20)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        A bound structlog logger
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
