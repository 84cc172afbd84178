"""Tests for structured logging."""

import json

import pytest
import structlog

from chronicle.observability.logging import (
    PIIRedactor,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON format writes one parseable object per event."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        get_logger("test").info("digest_tick_completed", digest_count=3)

        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed["event"] == "digest_tick_completed"
        assert parsed["digest_count"] == 3
        assert parsed["level"] == "info"
        assert "timestamp" in parsed

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(level="WARNING", format="json", redact_pii=False)
        logger = get_logger("test")

        logger.info("hidden")
        logger.warning("shown")

        lines = capsys.readouterr().err.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["shown"]

    def test_console_format(self) -> None:
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        get_logger("test").debug("test_message")

    def test_redaction_applied(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(level="INFO", format="json", redact_pii=True)
        get_logger("test").info("dead_letter", signature="v1=abc", note="mail a@b.io")

        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed["signature"] == "[REDACTED]"
        assert parsed["note"] == "mail [EMAIL]"

    def test_context_binding(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging(level="INFO", format="json", redact_pii=False)
        structlog.contextvars.bind_contextvars(tick_id="t-1")

        get_logger("test").info("digest_tick_empty")

        assert json.loads(capsys.readouterr().err.strip())["tick_id"] == "t-1"


class TestPIIRedactor:
    """Tests for PII redaction."""

    @pytest.fixture
    def redactor(self) -> PIIRedactor:
        return PIIRedactor()

    def test_redacts_sensitive_keys(self, redactor: PIIRedactor) -> None:
        event_dict = {"password": "secret123", "api_key": "key123", "data": "ok"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["password"] == "[REDACTED]"
        assert result["api_key"] == "[REDACTED]"
        assert result["data"] == "ok"

    def test_redacts_patterns_in_values(self, redactor: PIIRedactor) -> None:
        event_dict = {"message": "Contact user@example.com or +1-555-123-4567"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert "user@example.com" not in result["message"]
        assert "555-123-4567" not in result["message"]
        assert result["message"].startswith("Contact [EMAIL] or")

    def test_redacts_inside_audit_fields(self, redactor: PIIRedactor) -> None:
        """Changed attributes logged with an event are scanned too."""
        event_dict = {
            "event": "update_fields_unchanged",
            "fields": {"email": {"old": "a@x.io", "new": "b@x.io"}, "status": "ok"},
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["fields"]["email"] == "[REDACTED]"
        assert result["fields"]["status"] == "ok"

    def test_handles_lists(self, redactor: PIIRedactor) -> None:
        event_dict = {"paths": ["status", "owner user@example.com"]}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["paths"] == ["status", "owner [EMAIL]"]

    def test_preserves_non_pii_data(self, redactor: PIIRedactor) -> None:
        event_dict = {
            "event": "digest_tick_completed",
            "events_consumed": 150,
            "scope": "digest",
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result == event_dict

    def test_attribute_paths_match_last_segment(self, redactor: PIIRedactor) -> None:
        event_dict = {"paths": {"billing.email": "x", "billing.status": "ok"}}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["paths"]["billing.email"] == "[REDACTED]"
        assert result["paths"]["billing.status"] == "ok"

    def test_extra_keys(self) -> None:
        redactor = PIIRedactor(extra_keys=["IBAN"])
        event_dict = {"fields": {"iban": {"old": "DE00", "new": "DE01"}, "account.iban": "DE02"}}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["fields"]["iban"] == "[REDACTED]"
        assert result["fields"]["account.iban"] == "[REDACTED]"
        assert not PIIRedactor().is_sensitive("iban")


def test_setup_logging_with_extra_keys(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(level="INFO", format="json", redact_keys=["iban"])
    get_logger("test").info("change_transformed", iban="DE00")

    assert json.loads(capsys.readouterr().err.strip())["iban"] == "[REDACTED]"
