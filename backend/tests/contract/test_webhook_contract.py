"""Contract tests for the Square webhook endpoint.

Verifies the HTTP contract Square relies on: status codes (only 5xx asks
for redelivery) and the ``{"ok": ..., ...}`` acknowledgement body.

Test Categories:
- Accepted deliveries (stored, skipped, ignored)
- Rejected deliveries (signature, malformed payload)
- Idempotency across redeliveries
"""

from collections.abc import Callable
from typing import Any

from fastapi.testclient import TestClient
from starlette.status import (
    HTTP_200_OK,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
)

from donations_api.dependencies import get_donation_store, get_totals_aggregator


class TestWebhookAccepted:
    """Deliveries acknowledged with 200."""

    def test_completed_payment(self, post_webhook: Callable[..., Any], make_payment_event):
        """Signed completed payment is stored and counted."""
        response = post_webhook(make_payment_event())

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True}
        assert get_totals_aggregator().totals() == {"team-falcon": 5000}

    def test_redelivery(self, post_webhook: Callable[..., Any], make_payment_event):
        """Same payment delivered twice counts once."""
        post_webhook(make_payment_event())
        response = post_webhook(make_payment_event())

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True}
        assert get_totals_aggregator().totals() == {"team-falcon": 5000}

    def test_failed_status_skipped(self, post_webhook: Callable[..., Any], make_payment_event):
        response = post_webhook(make_payment_event(status="FAILED"))

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True, "skipped": "status=FAILED"}
        assert get_donation_store().get("pay_001") is None

    def test_missing_team_skipped(self, post_webhook: Callable[..., Any], make_payment_event):
        response = post_webhook(make_payment_event(note=None))

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True, "skipped": "no teamRef"}
        assert get_donation_store().get("pay_001") is not None
        assert get_totals_aggregator().totals() == {}

    def test_other_event_ignored(self, post_webhook: Callable[..., Any]):
        response = post_webhook({"type": "customer.created", "data": {}})

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True, "ignored": "customer.created"}

    def test_legacy_signature_header(self, client: TestClient, signed_body, make_payment_event):
        """The older x-square-signature header name is also accepted."""
        body, signature = signed_body(make_payment_event())

        response = client.post(
            "/api/square/webhook",
            content=body,
            headers={"Content-Type": "application/json", "x-square-signature": signature},
        )

        assert response.status_code == HTTP_200_OK


class TestWebhookRejected:
    """Deliveries answered with 4xx."""

    def test_invalid_signature(self, post_webhook: Callable[..., Any], make_payment_event):
        response = post_webhook(make_payment_event(), signature="bm9wZQ==")

        assert response.status_code == HTTP_401_UNAUTHORIZED
        assert response.json() == {"ok": False, "error": "invalid signature"}
        assert list(get_donation_store().list_all()) == []

    def test_missing_signature(self, client: TestClient, make_payment_event):
        response = client.post("/api/square/webhook", json=make_payment_event())

        assert response.status_code == HTTP_401_UNAUTHORIZED
        assert response.json()["ok"] is False

    def test_invalid_json(self, client: TestClient):
        from conftest import sign

        body = b"not json"
        response = client.post(
            "/api/square/webhook",
            content=body,
            headers={"x-square-hmacsha256-signature": sign(body)},
        )

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json() == {"ok": False, "error": "invalid json"}

    def test_invalid_amount(self, post_webhook: Callable[..., Any], make_payment_event):
        response = post_webhook(make_payment_event(amount=-5))

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json() == {"ok": False, "error": "invalid amount"}

    def test_no_payment(self, post_webhook: Callable[..., Any]):
        response = post_webhook({"type": "payment.created", "data": {}})

        assert response.status_code == HTTP_400_BAD_REQUEST
        assert response.json() == {"ok": False, "error": "no payment in payload"}


class TestWebhookProbe:
    """Tests for the GET probe."""

    def test_probe(self, client: TestClient):
        response = client.get("/api/square/webhook")

        assert response.status_code == HTTP_200_OK
        assert response.json() == {"ok": True, "endpoint": "square/webhook"}
