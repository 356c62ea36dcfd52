"""
Webhook receiver for local end-to-end testing.

Point a transaction's callback_url at these routes (or at a second instance of
the app) to see exactly what an integration would receive. Received payloads
are kept in memory until cleared.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter()


class WebhookInbox:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._received: List[Dict[str, Any]] = []

    def record(self, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        entry = {
            "type": kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        with self._lock:
            self._received.append(entry)
        return entry

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._received)

    def clear(self) -> None:
        with self._lock:
            self._received = []


def get_inbox(request: Request) -> WebhookInbox:
    return request.app.state.webhook_inbox


def _item_value(items: List[Dict[str, Any]], name: str) -> Any:
    return next((item.get("Value") for item in items if item.get("Name") == name), None)


@router.post("/webhooks/mpesa", tags=["Webhook Receiver"])
async def receive_mpesa_webhook(request: Request):
    payload: Dict[str, Any] = await request.json()
    callback = (payload.get("Body") or {}).get("stkCallback") or {}

    if callback.get("ResultCode") == 0:
        items = (callback.get("CallbackMetadata") or {}).get("Item") or []
        logger.info(
            "[RECEIVER] M-Pesa payment successful amount=%s receipt=%s phone=%s",
            _item_value(items, "Amount"),
            _item_value(items, "MpesaReceiptNumber"),
            _item_value(items, "PhoneNumber"),
        )
    else:
        logger.info("[RECEIVER] M-Pesa payment failed: %s", callback.get("ResultDesc"))

    get_inbox(request).record("mpesa", payload)
    return {"success": True, "message": "Webhook received"}


@router.post("/webhooks/bank", tags=["Webhook Receiver"])
async def receive_bank_webhook(request: Request):
    payload: Dict[str, Any] = await request.json()

    if payload.get("success"):
        logger.info(
            "[RECEIVER] Transfer successful id=%s bank_reference=%s amount=%s account=%s",
            payload.get("transaction_id"),
            payload.get("bank_reference"),
            payload.get("amount"),
            payload.get("account_number"),
        )
    else:
        logger.info("[RECEIVER] Transfer failed: %s", payload.get("message"))

    get_inbox(request).record("bank", payload)
    return {"success": True, "message": "Webhook received"}


@router.get("/webhooks", tags=["Webhook Receiver"])
async def list_webhooks(request: Request):
    received = get_inbox(request).all()
    return {"count": len(received), "webhooks": received}


@router.post("/webhooks/clear", tags=["Webhook Receiver"])
async def clear_webhooks(request: Request):
    get_inbox(request).clear()
    return {"success": True, "message": "All webhooks cleared"}
