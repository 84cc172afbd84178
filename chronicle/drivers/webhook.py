"""Webhook driver with HMAC signing.

Posts the wire representation of each object to an HTTP endpoint. The
receiving side uses the delivery id header (the object id) as its
dedup key.
"""

import hashlib
import hmac
import json
import time
from datetime import UTC, datetime

import httpx

from chronicle.drivers.base import Deliverable, DeliveryOutcome, Driver, object_kind
from chronicle.observability.logging import get_logger

logger = get_logger(__name__)

# Status codes worth another attempt
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429})


def sign_payload(payload: str, secret: str, timestamp: int) -> str:
    """Generate HMAC-SHA256 signature for a webhook payload.

    Args:
        payload: JSON-encoded payload string
        secret: Shared webhook secret
        timestamp: Unix timestamp (seconds)

    Returns:
        Signature string: "v1={hmac_hex}"
    """
    signed_payload = f"{timestamp}.{payload}"
    signature = hmac.new(
        secret.encode(), signed_payload.encode(), hashlib.sha256
    ).hexdigest()
    return f"v1={signature}"


class WebhookDriver(Driver):
    """Deliver objects to an HTTP endpoint."""

    def __init__(
        self,
        name: str,
        url: str,
        secret: str,
        timeout_ms: int = 10000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize driver.

        Args:
            name: Driver name used in routing and metrics
            url: Endpoint receiving POSTed records
            secret: Shared secret for HMAC signatures
            timeout_ms: Per-request timeout
            client: Preconfigured client (tests pass one with a mock transport)
        """
        super().__init__(name)
        self._url = url
        self._secret = secret
        self._timeout_ms = timeout_ms
        self._client = client
        self._owns_client = client is None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def deliver(self, obj: Deliverable) -> DeliveryOutcome:
        kind = object_kind(obj)
        payload = obj.to_wire()
        payload["kind"] = kind
        body = json.dumps(payload, separators=(",", ":"), sort_keys=True)

        timestamp = int(datetime.now(UTC).timestamp())
        headers = {
            "Content-Type": "application/json",
            "X-Chronicle-Signature": sign_payload(body, self._secret, timestamp),
            "X-Chronicle-Timestamp": str(timestamp),
            "X-Chronicle-Delivery-Id": str(obj.id),
            "X-Chronicle-Kind": kind,
            "User-Agent": "Chronicle-Webhook/1.0",
        }

        try:
            client = await self._ensure_client()
            start_time = time.time()
            response = await client.post(
                self._url,
                content=body,
                headers=headers,
                timeout=self._timeout_ms / 1000,
            )
            response_time_ms = int((time.time() - start_time) * 1000)
        except httpx.TimeoutException:
            logger.warning(
                "webhook_timeout", driver=self.name, timeout_ms=self._timeout_ms
            )
            return DeliveryOutcome.RETRYABLE
        except httpx.HTTPError as e:
            logger.warning("webhook_http_error", driver=self.name, error=str(e))
            return DeliveryOutcome.RETRYABLE

        status = response.status_code

        # 409 means the receiver already stored this id
        if 200 <= status < 300 or status == 409:
            logger.debug(
                "webhook_delivered",
                driver=self.name,
                object_id=str(obj.id),
                status_code=status,
                response_time_ms=response_time_ms,
            )
            return DeliveryOutcome.SUCCESS

        if status >= 500 or status in RETRYABLE_STATUS_CODES:
            logger.warning(
                "webhook_server_error",
                driver=self.name,
                status_code=status,
                response_preview=response.text[:200],
            )
            return DeliveryOutcome.RETRYABLE

        logger.warning(
            "webhook_client_error",
            driver=self.name,
            status_code=status,
            response_preview=response.text[:200],
        )
        return DeliveryOutcome.PERMANENT

    async def close(self) -> None:
        """Close the HTTP client if this driver created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
