"""Square webhook payload models.

Square has delivered both snake_case and camelCase payloads across API
versions and SDKs. Every field we read is listed once in the alias tables
below; the models resolve either spelling at the ingestion boundary so the
rest of the code only ever sees the canonical attribute names.
"""

import re
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Canonical name -> accepted spellings in provider payloads
PAYMENT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "status": ("status",),
    "amount_money": ("amount_money", "amountMoney"),
    "total_money": ("total_money", "totalMoney"),
    "note": ("note",),
    "created_at": ("created_at", "createdAt"),
    "receipt_url": ("receipt_url", "receiptUrl"),
    "buyer_email_address": ("buyer_email_address", "buyerEmailAddress"),
    "customer_details": ("customer_details", "customerDetails"),
    "order_id": ("order_id", "orderId"),
}

MONEY_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "amount": ("amount",),
    "currency": ("currency", "currency_code", "currencyCode"),
}

CUSTOMER_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "email_address": ("email_address", "emailAddress"),
}

EVENT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "event_id": ("event_id", "eventId", "id"),
    "type": ("type",),
    "created_at": ("created_at", "createdAt"),
}

# teamSlug=<value> as a whole word; value ends at whitespace, punctuation or brackets
TEAM_SLUG_PATTERN = re.compile(r"\bteamSlug=([^\s;,()\[\]]+)", re.IGNORECASE)

_INTEGER_STRING = re.compile(r"[+-]?\d+")


def _aliases(table: dict[str, tuple[str, ...]], name: str) -> AliasChoices:
    return AliasChoices(*table[name])


class SquareMoney(BaseModel):
    """Money object (amount in minor units)."""

    model_config = ConfigDict(extra="ignore")

    amount: Any = Field(default=None, validation_alias=_aliases(MONEY_FIELD_ALIASES, "amount"))
    currency: str | None = Field(
        default=None, validation_alias=_aliases(MONEY_FIELD_ALIASES, "currency")
    )


class SquareCustomerDetails(BaseModel):
    """Customer details attached to a payment."""

    model_config = ConfigDict(extra="ignore")

    email_address: str | None = Field(
        default=None, validation_alias=_aliases(CUSTOMER_FIELD_ALIASES, "email_address")
    )


class SquarePayment(BaseModel):
    """Normalized view of a Square Payment object."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "id"))
    status: str | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "status")
    )
    amount_money: SquareMoney | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "amount_money")
    )
    total_money: SquareMoney | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "total_money")
    )
    note: str | None = Field(default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "note"))
    created_at: str | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "created_at")
    )
    receipt_url: str | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "receipt_url")
    )
    buyer_email_address: str | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "buyer_email_address")
    )
    customer_details: SquareCustomerDetails | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "customer_details")
    )
    order_id: str | None = Field(
        default=None, validation_alias=_aliases(PAYMENT_FIELD_ALIASES, "order_id")
    )

    @property
    def normalized_status(self) -> str:
        return (self.status or "").strip().upper()

    @property
    def money(self) -> SquareMoney | None:
        """Base amount, falling back to the total when no base amount is sent."""
        return self.amount_money or self.total_money

    @property
    def amount_cents(self) -> int | None:
        """Amount in minor units, or None if it cannot be derived."""
        money = self.money
        return parse_minor_units(money.amount) if money else None

    @property
    def currency(self) -> str | None:
        money = self.money
        return money.currency.upper() if money and money.currency else None

    @property
    def email(self) -> str | None:
        if self.customer_details and self.customer_details.email_address:
            return self.customer_details.email_address
        return self.buyer_email_address

    @property
    def team_ref(self) -> str | None:
        return parse_team_ref(self.note)


class SquareWebhookEvent(BaseModel):
    """Envelope of a Square webhook notification."""

    model_config = ConfigDict(extra="ignore")

    event_id: str | None = Field(
        default=None, validation_alias=_aliases(EVENT_FIELD_ALIASES, "event_id")
    )
    type: str | None = Field(default=None, validation_alias=_aliases(EVENT_FIELD_ALIASES, "type"))
    created_at: str | None = Field(
        default=None, validation_alias=_aliases(EVENT_FIELD_ALIASES, "created_at")
    )
    data: dict[str, Any] = Field(default_factory=dict)
    payment: dict[str, Any] | None = Field(
        default=None, description="Legacy flattened payment at the top level"
    )

    @property
    def event_type(self) -> str:
        """Event type, falling back to data.type for legacy envelopes."""
        value = self.type or self.data.get("type") or ""
        return value if isinstance(value, str) else ""

    def find_payment(self) -> dict[str, Any] | None:
        """Locate the embedded payment object.

        Checks ``data.object.payment`` first, then a legacy flattened
        ``data.object`` that is itself a payment, then a top-level ``payment``.
        """
        obj = self.data.get("object")
        if isinstance(obj, dict):
            payment = obj.get("payment")
            if isinstance(payment, dict):
                return payment
            if "id" in obj and any(
                alias in obj
                for name in ("status", "amount_money")
                for alias in PAYMENT_FIELD_ALIASES[name]
            ):
                return obj
        if isinstance(self.payment, dict):
            return self.payment
        return None


def parse_minor_units(value: Any) -> int | None:
    """Coerce a provider amount to an int of minor units.

    Accepts ints, integral floats/Decimals, and integer strings (Square sends
    64-bit amounts as strings in some SDKs). Returns None for anything else.

    Args:
        value: Raw amount value from the payload

    Returns:
        Integer amount or None if no valid amount can be derived.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            return None
        return int(value)
    if isinstance(value, str) and _INTEGER_STRING.fullmatch(value.strip()):
        return int(value.strip())
    return None


def parse_team_ref(note: str | None) -> str | None:
    """Extract the team slug from a payment note.

    The checkout link writes ``teamSlug=<slug>`` into the note; the key is
    matched case-insensitively and the value ends at whitespace or ';'.

    Args:
        note: Freeform payment note

    Returns:
        Team slug, or None if the note carries no team reference.
    """
    if not note or not isinstance(note, str):
        return None
    match = TEAM_SLUG_PATTERN.search(note)
    if not match:
        return None
    return match.group(1).strip() or None
