"""Tests for WebhookDriver."""

import hashlib
import hmac
import json

import httpx
import pytest

from chronicle.drivers import DeliveryOutcome, WebhookDriver
from chronicle.drivers.webhook import sign_payload
from tests.factories import EventFactory

URL = "https://audit.example.com/hooks"
SECRET = "whsec_test"


def make_driver(handler) -> tuple[WebhookDriver, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    return WebhookDriver(name="hook", url=URL, secret=SECRET, client=client), requests


class TestSignPayload:
    """Tests for HMAC signing."""

    def test_signature_format(self) -> None:
        signature = sign_payload('{"a":1}', SECRET, 1700000000)

        expected = hmac.new(
            SECRET.encode(), b'1700000000.{"a":1}', hashlib.sha256
        ).hexdigest()
        assert signature == f"v1={expected}"

    def test_signature_depends_on_timestamp(self) -> None:
        assert sign_payload("{}", SECRET, 1) != sign_payload("{}", SECRET, 2)


class TestWebhookDriver:
    """Tests for webhook delivery."""

    async def test_posts_signed_record(self) -> None:
        driver, requests = make_driver(lambda r: httpx.Response(200))
        event = EventFactory.update(status=("a", "b"))

        outcome = await driver.deliver(event)

        assert outcome is DeliveryOutcome.SUCCESS
        [request] = requests
        assert str(request.url) == URL
        assert request.headers["X-Chronicle-Delivery-Id"] == str(event.id)
        assert request.headers["X-Chronicle-Kind"] == "event"

        body = request.content.decode()
        timestamp = int(request.headers["X-Chronicle-Timestamp"])
        assert request.headers["X-Chronicle-Signature"] == sign_payload(body, SECRET, timestamp)

        payload = json.loads(body)
        assert payload["id"] == str(event.id)
        assert payload["kind"] == "event"
        assert payload["fields"]["status"] == {"old": "a", "new": "b"}

    async def test_conflict_means_already_stored(self) -> None:
        driver, _ = make_driver(lambda r: httpx.Response(409))
        assert await driver.deliver(EventFactory.create()) is DeliveryOutcome.SUCCESS

    @pytest.mark.parametrize("status", [408, 425, 429, 500, 503])
    async def test_retryable_status(self, status: int) -> None:
        driver, _ = make_driver(lambda r: httpx.Response(status))
        assert await driver.deliver(EventFactory.create()) is DeliveryOutcome.RETRYABLE

    @pytest.mark.parametrize("status", [400, 401, 404, 422])
    async def test_permanent_status(self, status: int) -> None:
        driver, _ = make_driver(lambda r: httpx.Response(status, text="bad record"))
        assert await driver.deliver(EventFactory.create()) is DeliveryOutcome.PERMANENT

    async def test_timeout_is_retryable(self) -> None:
        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        driver, _ = make_driver(_timeout)
        assert await driver.deliver(EventFactory.create()) is DeliveryOutcome.RETRYABLE

    async def test_connection_error_is_retryable(self) -> None:
        def _refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        driver, _ = make_driver(_refused)
        assert await driver.deliver(EventFactory.create()) is DeliveryOutcome.RETRYABLE

    async def test_close_keeps_injected_client(self) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        driver = WebhookDriver(name="hook", url=URL, secret=SECRET, client=client)

        await driver.close()

        assert not client.is_closed
        await client.aclose()
