"""Square payment service for checkout links and webhook signatures.

Talks to Square's REST API directly with httpx. Credentials are read from
the environment first and from SSM Parameter Store second.
"""

import base64
import hashlib
import hmac
import uuid
from functools import lru_cache
from typing import Any

import httpx

from donations.config import Settings, get_settings
from donations.models.enums import SquareEnvironment
from donations.services.ssm_service import (
    SSMService,
    SSMServiceError,
    get_ssm_service,
    square_parameter_name,
)
from donations.utils.logging import get_logger

logger = get_logger(__name__)

SQUARE_BASE_URLS: dict[SquareEnvironment, str] = {
    SquareEnvironment.SANDBOX: "https://connect.squareupsandbox.com",
    SquareEnvironment.PRODUCTION: "https://connect.squareup.com",
}
PAYMENT_LINKS_PATH = "/v2/online-checkout/payment-links"
REQUEST_TIMEOUT_SECONDS = 15.0

# Square sends the signature under either name depending on API version
SIGNATURE_HEADERS = ("x-square-hmacsha256-signature", "x-square-signature")


class SquareServiceError(Exception):
    """Raised when a Square operation fails."""

    def __init__(
        self,
        message: str,
        *,
        category: str | None = None,
        code: str | None = None,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize with message and Square's error fields.

        Args:
            message: Human-readable error message.
            category: Square error category (e.g. AUTHENTICATION_ERROR).
            code: Square error code (e.g. UNAUTHORIZED).
            detail: Square's diagnostic detail; never shown to donors.
            status_code: HTTP status Square answered with, if any.
        """
        super().__init__(message)
        self.category = category
        self.code = code
        self.detail = detail
        self.status_code = status_code


class SquareNotConfiguredError(SquareServiceError):
    """Raised when Square credentials or the location id are missing."""

    pass


def compute_signature(signature_key: str, notification_url: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the notification URL followed by the raw body."""
    digest = hmac.new(
        signature_key.encode("utf-8"),
        notification_url.encode("utf-8") + body,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class SquareService:
    """Service for Square payment operations.

    Handles:
    - Webhook signature verification
    - Payment link creation for donations

    Usage:
        square = get_square_service()
        if square.verify_webhook_signature(body, header):
            ...
        url = square.create_payment_link(
            amount_cents=2500,
            currency="CAD",
            team_name="Team Falcon",
            note="teamSlug=team-falcon",
            redirect_url="https://example.org/teams/team-falcon?thankyou=1",
        )
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        ssm: SSMService | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._ssm = ssm
        self._http = http_client
        self._access_token = self._settings.square_access_token
        self._signature_key = self._settings.square_webhook_signature_key

    @property
    def base_url(self) -> str:
        return SQUARE_BASE_URLS[self._settings.square_environment]

    def _secret_from_ssm(self, name: str) -> str:
        """Look a secret up in SSM; an empty string means unavailable."""
        if not self._settings.secrets_from_ssm:
            return ""
        ssm = self._ssm or get_ssm_service()
        try:
            return ssm.get_parameter(square_parameter_name(self._settings.environment, name))
        except SSMServiceError as e:
            logger.warning("Square secret %s unavailable: %s", name, e)
            return ""

    def _get_signature_key(self) -> str | None:
        if self._signature_key is None:
            self._signature_key = self._secret_from_ssm("webhook_signature_key")
        return self._signature_key

    def _get_access_token(self) -> str:
        if self._access_token is None:
            self._access_token = self._secret_from_ssm("access_token")
        if not self._access_token:
            raise SquareNotConfiguredError("SQUARE_ACCESS_TOKEN is not configured", status_code=500)
        return self._access_token

    @property
    def signature_configured(self) -> bool:
        """Whether both the signature key and the notification URL are known."""
        return bool(self._settings.square_webhook_url and self._get_signature_key())

    def verify_webhook_signature(self, payload: bytes, signature_header: str | None) -> bool:
        """Check a webhook delivery against the configured signature key.

        The header may carry several comma-separated signatures (during key
        rotation); any match is accepted. Comparison is constant-time.

        Args:
            payload: Raw request body bytes, exactly as received.
            signature_header: Value of the Square signature header.

        Returns:
            True only when signing is configured and a signature matches.
        """
        if not signature_header or not self.signature_configured:
            return False

        expected = compute_signature(
            self._get_signature_key() or "",
            self._settings.square_webhook_url or "",
            payload,
        )
        candidates = [part.strip() for part in signature_header.split(",") if part.strip()]
        return any(
            hmac.compare_digest(expected.encode("ascii"), candidate.encode("utf-8"))
            for candidate in candidates
        )

    def create_payment_link(
        self,
        *,
        amount_cents: int,
        currency: str,
        team_name: str,
        note: str,
        redirect_url: str,
    ) -> str:
        """Create a hosted Square checkout link for a donation.

        Args:
            amount_cents: Donation amount in minor units.
            currency: ISO currency code.
            team_name: Display name used in the checkout title.
            note: Payment note; carries ``teamSlug=<slug>`` back to the webhook.
            redirect_url: Where Square sends the donor after paying.

        Returns:
            Checkout URL to redirect the donor to.

        Raises:
            SquareServiceError: If Square rejects the request or returns no URL.
        """
        location_id = self._settings.square_location_id
        if not location_id:
            raise SquareNotConfiguredError("SQUARE_LOCATION_ID is not configured", status_code=500)

        payload: dict[str, Any] = {
            "idempotency_key": str(uuid.uuid4()),
            "quick_pay": {
                "name": f"Donate to {team_name}",
                "price_money": {"amount": amount_cents, "currency": currency},
                "location_id": location_id,
            },
            "description": f"Support {team_name}'s fundraiser.",
            "payment_note": note,
            "checkout_options": {"redirect_url": redirect_url},
        }
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Square-Version": self._settings.square_api_version,
            "Content-Type": "application/json",
        }

        logger.info("Creating Square payment link for %d cents (%s)", amount_cents, note)
        post = self._http.post if self._http is not None else httpx.post
        try:
            response = post(
                f"{self.base_url}{PAYMENT_LINKS_PATH}",
                headers=headers,
                json=payload,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.error("Square request failed: %s", e)
            raise SquareServiceError(f"Square request failed: {e}", status_code=502) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            errors = data.get("errors") if isinstance(data, dict) else None
            first = errors[0] if errors and isinstance(errors[0], dict) else {}
            category = first.get("category")
            code = first.get("code")
            logger.error(
                "Square payment link creation failed: status=%d category=%s code=%s",
                response.status_code,
                category,
                code,
            )
            if category == "AUTHENTICATION_ERROR":
                logger.error("Square rejected our credentials; check SQUARE_ACCESS_TOKEN")
            raise SquareServiceError(
                f"Square request failed: {first.get('detail') or code or response.status_code}",
                category=category,
                code=code,
                detail=first.get("detail"),
                status_code=response.status_code,
            )

        link = data.get("payment_link") if isinstance(data, dict) else None
        url = (link or {}).get("url") or (link or {}).get("long_url")
        if not url:
            logger.error("Square did not return a payment link")
            raise SquareServiceError("Square did not return a payment link.", status_code=502)

        logger.info("Square payment link created: %s", (link or {}).get("id"))
        return str(url)


def find_signature_header(headers: Any) -> str | None:
    """Return the first Square signature header present in ``headers``."""
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return str(value)
    return None


@lru_cache(maxsize=1)
def get_square_service() -> SquareService:
    """Get the shared SquareService instance (singleton pattern)."""
    return SquareService()
