"""Unit tests for Square webhook payload normalization.

Square payloads arrive in snake_case or camelCase, with the payment at
``data.object.payment`` or in older flattened shapes. These tests pin the
field resolution, amount parsing and team reference extraction.
"""

from decimal import Decimal

import pytest

from donations.models.donation import DonationRecord
from donations.models.square_webhook import (
    SquarePayment,
    SquareWebhookEvent,
    parse_minor_units,
    parse_team_ref,
)

from conftest import build_payment_event


class TestParseTeamRef:
    """Tests for teamSlug extraction from payment notes."""

    @pytest.mark.parametrize(
        ("note", "expected"),
        [
            ("teamSlug=team-falcon", "team-falcon"),
            ("Donation for teamSlug=team-lion thanks!", "team-lion"),
            ("source=web;teamSlug=team-phoenix;ref=42", "team-phoenix"),
            ("TEAMSLUG=team-falcon", "team-falcon"),
            ("(teamSlug=team-falcon)", "team-falcon"),
            ("Go Lions! [teamSlug=team-lion], from Sam", "team-lion"),
            ("ref=42,teamSlug=team-phoenix", "team-phoenix"),
            ("no team here", None),
            ("myteamSlug=team-falcon", None),
            ("my_teamSlug=team-falcon", None),
            ("teamSlug=", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse(self, note, expected):
        assert parse_team_ref(note) == expected


class TestParseMinorUnits:
    """Tests for amount coercion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (5000, 5000),
            (0, 0),
            (-100, -100),
            ("5000", 5000),
            (" 2500 ", 2500),
            (5000.0, 5000),
            (Decimal("1200"), 1200),
            (50.5, None),
            ("12.50", None),
            ("abc", None),
            (True, None),
            (None, None),
            ({"amount": 1}, None),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_minor_units(value) == expected


class TestSquarePayment:
    """Tests for field resolution across payload spellings."""

    def test_camel_case_payment(self):
        event = build_payment_event(camel_case=True)
        payment = SquarePayment.model_validate(event["data"]["object"]["payment"])

        assert payment.id == "pay_001"
        assert payment.amount_cents == 5000
        assert payment.currency == "CAD"
        assert payment.team_ref == "team-falcon"
        assert payment.email == "donor@example.com"
        assert payment.receipt_url.endswith("pay_001")
        assert payment.created_at == "2025-03-01T12:00:00.000Z"

    def test_snake_case_payment(self):
        event = build_payment_event(camel_case=False)
        payment = SquarePayment.model_validate(event["data"]["object"]["payment"])

        assert payment.id == "pay_001"
        assert payment.amount_cents == 5000
        assert payment.team_ref == "team-falcon"
        assert payment.email == "donor@example.com"

    def test_status_is_normalized(self):
        payment = SquarePayment.model_validate({"id": "p", "status": " completed "})

        assert payment.normalized_status == "COMPLETED"

    def test_total_money_fallback(self):
        payment = SquarePayment.model_validate(
            {"id": "p", "total_money": {"amount": 1500, "currency": "cad"}}
        )

        assert payment.amount_cents == 1500
        assert payment.currency == "CAD"

    def test_missing_money(self):
        payment = SquarePayment.model_validate({"id": "p"})

        assert payment.amount_cents is None
        assert payment.currency is None


class TestFindPayment:
    """Tests for locating the payment inside an event envelope."""

    def test_nested_payment(self):
        event = SquareWebhookEvent.model_validate(build_payment_event())

        assert event.find_payment()["id"] == "pay_001"
        assert event.event_type == "payment.created"
        assert event.event_id == "evt_001"

    def test_flattened_data_object(self):
        event = SquareWebhookEvent.model_validate(
            {
                "type": "payment.updated",
                "data": {"object": {"id": "pay_9", "status": "COMPLETED", "amountMoney": {"amount": 1}}},
            }
        )

        assert event.find_payment()["id"] == "pay_9"

    def test_top_level_payment(self):
        event = SquareWebhookEvent.model_validate(
            {"type": "payment.created", "payment": {"id": "pay_7", "status": "COMPLETED"}}
        )

        assert event.find_payment()["id"] == "pay_7"

    def test_type_falls_back_to_data_type(self):
        event = SquareWebhookEvent.model_validate({"data": {"type": "payment.created"}})

        assert event.event_type == "payment.created"

    def test_no_payment(self):
        event = SquareWebhookEvent.model_validate({"type": "payment.created", "data": {}})

        assert event.find_payment() is None


class TestDonationRecord:
    """Tests for the stored record model."""

    def test_countable_cents(self):
        assert DonationRecord(id="a", team_ref="t", amount_cents=10, created_at="x").countable_cents == 10
        assert DonationRecord(id="a", team_ref=None, amount_cents=10, created_at="x").countable_cents == 0
        assert DonationRecord(id="a", team_ref="t", amount_cents=0, created_at="x").countable_cents == 0

    def test_uncountable_record_is_already_counted(self):
        """Records that contribute nothing need no snapshot update."""
        record = DonationRecord(id="a", team_ref=None, amount_cents=10, created_at="x")

        assert record.is_counted is True

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            DonationRecord(id="a", team_ref="t", amount_cents=-1, created_at="x")

    def test_json_excludes_unset_sensitive_fields(self):
        record = DonationRecord(id="a", team_ref="t", amount_cents=10, created_at="x")

        body = record.to_json().decode("utf-8")

        assert "email" not in body
        assert "receiptUrl" not in body
