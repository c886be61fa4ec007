"""Unit tests for structured logging helpers."""

import logging

import pytest

from donations.utils.logging import (
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_donation_operation,
    log_webhook_event,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_correlation_id():
    yield
    clear_correlation_id()


class TestCorrelationId:
    """Tests for the correlation id context."""

    def test_set_and_get(self):
        assert set_correlation_id("abc") == "abc"
        assert get_correlation_id() == "abc"

    def test_generates_when_missing(self):
        cid = set_correlation_id()

        assert cid
        assert get_correlation_id() == cid

    def test_formatter_prefixes_id(self):
        set_correlation_id("req-42")
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

        output = StructuredFormatter("%(message)s").format(record)

        assert output == "[req-42] hello"


class TestLogHelpers:
    """Tests for log level selection and context."""

    def test_webhook_levels(self, caplog: pytest.LogCaptureFixture):
        logger = get_logger("tests.webhook")

        with caplog.at_level(logging.INFO, logger="tests.webhook"):
            log_webhook_event(logger, "payment.created", "evt_1", result="stored")
            log_webhook_event(logger, "payment.created", "evt_2", result="skipped")
            log_webhook_event(logger, "payment.created", "evt_3", result="rejected", error="bad")

        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING, logging.ERROR]
        assert caplog.records[2].error == "bad"
        assert "error=bad" in caplog.records[2].getMessage()

    def test_donation_operation_context(self, caplog: pytest.LogCaptureFixture):
        logger = get_logger("tests.donation")

        with caplog.at_level(logging.INFO, logger="tests.donation"):
            log_donation_operation(
                logger, "increment_total", payment_id="pay_1", team_ref="team-falcon", amount_cents=500
            )

        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert record.payment_id == "pay_1"
        assert "team_ref=team-falcon" in record.getMessage()

    def test_donation_operation_error_level(self, caplog: pytest.LogCaptureFixture):
        logger = get_logger("tests.donation")

        with caplog.at_level(logging.INFO, logger="tests.donation"):
            log_donation_operation(logger, "upsert_donation", payment_id="pay_1", error="disk full")

        assert caplog.records[0].levelno == logging.ERROR
