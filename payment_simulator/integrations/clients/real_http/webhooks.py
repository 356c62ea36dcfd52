"""
Webhook HTTP client.

POSTs resolution payloads to caller-supplied callback URLs. Delivery is
at-most-once per resolution and never raises: every outcome, including
transport failures, comes back as a WebhookResult.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from payment_simulator.error_handler import DeliveryError
from payment_simulator.integrations.contracts.interfaces import WebhookResult

logger = logging.getLogger(__name__)

_MAX_BODY_CHARS = 2000


class WebhookDispatcher:
    def __init__(
        self,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def deliver(self, url: str, payload: Dict[str, Any]) -> WebhookResult:
        headers = {"Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            error = DeliveryError(_describe_transport_error(e))
            logger.warning("[WEBHOOK] Delivery to %s failed: %s", url, error.message)
            return WebhookResult(delivered=False, error=error.message)

        body = response.text[:_MAX_BODY_CHARS] if response.content else None
        if response.is_success:
            logger.info("[WEBHOOK] Delivered to %s (HTTP %s)", url, response.status_code)
            return WebhookResult(delivered=True, status_code=response.status_code, response_body=body)

        logger.warning("[WEBHOOK] %s answered HTTP %s", url, response.status_code)
        return WebhookResult(
            delivered=False,
            status_code=response.status_code,
            error=f"Webhook endpoint responded with HTTP {response.status_code}",
            response_body=body,
        )


def _describe_transport_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return f"{type(exc).__name__}: {message}"
    return type(exc).__name__
