"""Webhook handler for processing Square payment events.

Provides business logic for handling webhook deliveries separate from
HTTP routing concerns. ``handle`` never raises: every outcome, including
storage failures, becomes a ``WebhookResult`` whose status code tells
Square whether a redelivery is worthwhile.
"""

import datetime as dt
import json
from typing import Any

from pydantic import ValidationError

from donations.config import Settings
from donations.models.donation import DonationRecord
from donations.models.enums import SignatureMode, WebhookOutcome
from donations.models.square_webhook import SquarePayment, SquareWebhookEvent
from donations.models.webhook import WebhookResult
from donations.services.donation_store import DonationStore, DonationStoreError
from donations.services.square_service import SquareService
from donations.services.totals import TotalsAggregator, TotalsError
from donations.utils.logging import get_logger, log_webhook_event

logger = get_logger(__name__)

PAYMENT_EVENT_PREFIX = "payment."


class WebhookHandler:
    """Handler for Square payment webhooks.

    Verifies the signature, stores one record per payment id and folds the
    donation into the team totals. Redelivered events overwrite the same
    record and leave totals unchanged.
    """

    def __init__(
        self,
        settings: Settings,
        square_service: SquareService,
        store: DonationStore,
        totals: TotalsAggregator,
    ) -> None:
        self.settings = settings
        self.square = square_service
        self.store = store
        self.totals = totals

    def _check_signature(self, raw_body: bytes, signature_header: str | None) -> bool:
        if self.square.verify_webhook_signature(raw_body, signature_header):
            return True

        reason = "missing" if not signature_header else "mismatch"
        if not self.square.signature_configured:
            reason = "not configured"

        if self.settings.signature_mode is SignatureMode.PERMISSIVE:
            logger.warning(
                "Webhook signature %s; processing anyway (signature mode is permissive)",
                reason,
            )
            return True

        logger.warning("Rejecting webhook: signature %s", reason)
        return False

    def build_record(
        self,
        payment: SquarePayment,
        amount_cents: int,
        raw: dict[str, Any] | None = None,
    ) -> DonationRecord:
        """Build the stored record for a validated payment.

        Args:
            payment: Normalized payment with a non-empty id
            amount_cents: Validated non-negative amount
            raw: Payment object as delivered, kept outside production only

        Returns:
            DonationRecord ready to upsert
        """
        return DonationRecord(
            id=payment.id or "",
            team_ref=payment.team_ref,
            amount_cents=amount_cents,
            currency=payment.currency or self.settings.square_currency,
            status=payment.normalized_status,
            email=payment.email,
            receipt_url=payment.receipt_url,
            created_at=payment.created_at or dt.datetime.now(dt.UTC).isoformat(),
            raw=None if self.settings.is_production else raw,
        )

    def handle(self, raw_body: bytes, signature_header: str | None) -> WebhookResult:
        """Process one webhook delivery.

        Args:
            raw_body: Request body exactly as received (signature covers these bytes)
            signature_header: Square signature header value, if any

        Returns:
            WebhookResult with the acknowledgement to send back
        """
        try:
            return self._process(raw_body, signature_header)
        except Exception:
            # Square retries on 5xx, so an unexpected failure must not look like success
            logger.exception("Unexpected error processing webhook")
            return WebhookResult.failed(500, "internal error", outcome=WebhookOutcome.ERROR)

    def _process(self, raw_body: bytes, signature_header: str | None) -> WebhookResult:
        if not self._check_signature(raw_body, signature_header):
            log_webhook_event(logger, "", None, result="rejected", error="invalid signature")
            return WebhookResult.failed(401, "invalid signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            log_webhook_event(logger, "", None, result="rejected", error="invalid json")
            return WebhookResult.failed(400, "invalid json")
        if not isinstance(payload, dict):
            log_webhook_event(logger, "", None, result="rejected", error="invalid json")
            return WebhookResult.failed(400, "invalid json")

        try:
            event = SquareWebhookEvent.model_validate(payload)
        except ValidationError as e:
            log_webhook_event(logger, "", None, result="rejected", error=f"invalid event: {e}")
            return WebhookResult.failed(400, "invalid json")

        event_type = event.event_type
        if not event_type.startswith(PAYMENT_EVENT_PREFIX):
            log_webhook_event(logger, event_type, event.event_id, result="ignored")
            return WebhookResult.accepted(WebhookOutcome.IGNORED, ignored=event_type)

        return self._handle_payment(event, event_type)

    def _handle_payment(self, event: SquareWebhookEvent, event_type: str) -> WebhookResult:
        payment_data = event.find_payment()
        try:
            payment = SquarePayment.model_validate(payment_data or {})
        except ValidationError as e:
            log_webhook_event(
                logger, event_type, event.event_id, result="rejected", error=f"invalid payment: {e}"
            )
            return WebhookResult.failed(400, "no payment in payload")

        if not payment.id:
            log_webhook_event(
                logger, event_type, event.event_id, result="rejected", error="no payment in payload"
            )
            return WebhookResult.failed(400, "no payment in payload")

        status = payment.normalized_status
        if status not in self.settings.countable_payment_statuses:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                result="skipped",
                status=status,
            )
            return WebhookResult.accepted(
                WebhookOutcome.SKIPPED, payment_id=payment.id, skipped=f"status={status}"
            )

        amount_cents = payment.amount_cents
        if amount_cents is None or amount_cents < 0:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                result="rejected",
                error="invalid amount",
            )
            return WebhookResult.failed(400, "invalid amount", payment_id=payment.id)

        record = self.build_record(payment, amount_cents, raw=payment_data)

        try:
            stored = self.store.upsert(record).record
        except DonationStoreError as e:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                result="error",
                error=str(e),
            )
            return WebhookResult.failed(
                500, "write failed", outcome=WebhookOutcome.ERROR, payment_id=payment.id
            )

        try:
            delta = self.totals.record_donation(stored)
        except TotalsError as e:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                team_ref=record.team_ref,
                result="error",
                error=str(e),
            )
            return WebhookResult.failed(
                500, "totals update failed", outcome=WebhookOutcome.ERROR, payment_id=payment.id
            )

        if not record.team_ref:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                result="skipped",
                reason="no teamRef",
            )
            return WebhookResult.accepted(
                WebhookOutcome.SKIPPED, payment_id=payment.id, skipped="no teamRef"
            )

        if amount_cents == 0:
            log_webhook_event(
                logger,
                event_type,
                event.event_id,
                payment_id=payment.id,
                team_ref=record.team_ref,
                result="skipped",
                reason="zero amount",
            )
            return WebhookResult.accepted(
                WebhookOutcome.SKIPPED,
                payment_id=payment.id,
                team_ref=record.team_ref,
                skipped="zero amount",
            )

        log_webhook_event(
            logger,
            event_type,
            event.event_id,
            payment_id=payment.id,
            team_ref=record.team_ref,
            result="stored",
            amount_cents=amount_cents,
            delta_cents=delta,
        )
        return WebhookResult.accepted(payment_id=payment.id, team_ref=record.team_ref)
