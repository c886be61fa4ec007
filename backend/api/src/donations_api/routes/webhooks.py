"""Webhook endpoints for Square payment notifications.

These endpoints do NOT require an admin token: Square signs each delivery
with HMAC-SHA256 and the WebhookHandler verifies it.

Responses always use Square's acknowledgement shape ``{"ok": ..., ...}``.
A 5xx status asks Square to redeliver; every other status is final.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from donations.services.square_service import find_signature_header
from donations.services.webhook_handler import WebhookHandler
from donations_api.dependencies import get_webhook_handler

router = APIRouter(tags=["webhooks"])


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    ok: bool
    error: str | None = None
    ignored: str | None = None
    skipped: str | None = None


@router.post(
    "/square/webhook",
    summary="Receive Square webhook events",
    description="""
Endpoint for Square `payment.*` webhook events.

**No authentication required** - deliveries are verified with the Square
webhook signature key against `SQUARE_WEBHOOK_URL`.

**Idempotent**: a redelivered payment overwrites its record and does not
change team totals again.
""",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    responses={
        200: {"description": "Stored, skipped or ignored"},
        400: {"description": "Malformed payload (invalid json, no payment, invalid amount)"},
        401: {"description": "Invalid signature"},
        500: {"description": "Storage failure; Square will retry"},
    },
)
async def handle_square_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> JSONResponse:
    """Verify, store and count one Square webhook delivery."""
    # Signature covers the exact bytes received
    payload = await request.body()
    result = handler.handle(payload, find_signature_header(request.headers))
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get(
    "/square/webhook",
    summary="Webhook endpoint probe",
)
async def square_webhook_probe() -> dict[str, Any]:
    return {"ok": True, "endpoint": "square/webhook"}
