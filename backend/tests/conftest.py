"""Pytest configuration and fixtures for the donation backend tests.

This module provides reusable fixtures for testing:
- Environment defaults (local blob store in a temp dir, known Square secrets)
- S3 and SSM mocking with moto
- Donation store / totals aggregator wired to a local blob store
- Square webhook payload builders and signing helpers
"""

import base64
import hashlib
import hmac
import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TEST_SIGNATURE_KEY = "test-signature-key"
TEST_WEBHOOK_URL = "https://fundraiser.example.org/api/square/webhook"
TEST_ADMIN_TOKEN = "test-admin-token"
TEST_BUCKET = "test-fundraiser-donations"

TEST_ENV: dict[str, str] = {
    "ENVIRONMENT": "test",
    "SQUARE_ENVIRONMENT": "sandbox",
    "SQUARE_ACCESS_TOKEN": "test-access-token",
    "SQUARE_LOCATION_ID": "LOC123",
    "SQUARE_WEBHOOK_SIGNATURE_KEY": TEST_SIGNATURE_KEY,
    "SQUARE_WEBHOOK_URL": TEST_WEBHOOK_URL,
    "WEBHOOK_SIGNATURE_MODE": "strict",
    "SECRETS_FROM_SSM": "false",
    "BLOB_BACKEND": "local",
    "ADMIN_TOKEN": TEST_ADMIN_TOKEN,
}

# Cleared so a developer's shell cannot change test behavior
CLEARED_ENV = (
    "COUNTABLE_PAYMENT_STATUSES",
    "TOTALS_STRATEGY",
    "TOTALS_CACHE_TTL_SECONDS",
    "DONATION_WRITE_POLICY",
    "BLOB_BUCKET",
    "BLOB_PREFIX",
    "TEAMS_FILE",
    "PUBLIC_BASE_URL",
    "SQUARE_CURRENCY",
)


# === Service Fixtures ===


@pytest.fixture(autouse=True)
def test_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point every test at a fresh local blob directory and known secrets.

    Cached settings and service singletons are reset before and after each
    test so environment changes made with monkeypatch take effect.
    """
    from donations_api.dependencies import reset_services

    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    for name in CLEARED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BLOB_LOCAL_DIR", str(tmp_path / "blobs"))

    reset_services()
    yield
    reset_services()


@pytest.fixture
def blob_dir(tmp_path: Path) -> Path:
    return tmp_path / "blobs"


@pytest.fixture
def blob_store(blob_dir: Path) -> Any:
    """Local blob store rooted in the test's blob directory."""
    from donations.services.blob_store import LocalBlobStore

    return LocalBlobStore(blob_dir)


@pytest.fixture
def donation_store(blob_store: Any) -> Any:
    from donations.services.donation_store import DonationStore

    return DonationStore(blob_store)


@pytest.fixture
def aggregator(donation_store: Any, blob_store: Any) -> Any:
    """Snapshot totals aggregator over the local blob store."""
    from donations.services.totals import SnapshotTotalsAggregator

    return SnapshotTotalsAggregator(donation_store, blob_store)


@pytest.fixture
def client() -> Any:
    """Create a test client for the FastAPI app."""
    from fastapi.testclient import TestClient

    from donations_api.main import app

    return TestClient(app)


# === AWS Fixtures ===


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mocked AWS Credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")


@pytest.fixture
def s3_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked S3 client with the test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name="eu-west-1")
        client.create_bucket(
            Bucket=TEST_BUCKET,
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )
        yield client


@pytest.fixture
def ssm_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked SSM client."""
    with mock_aws():
        yield boto3.client("ssm", region_name="eu-west-1")


# === Square Payload Fixtures ===


def sign(body: bytes, key: str = TEST_SIGNATURE_KEY, url: str = TEST_WEBHOOK_URL) -> str:
    """Square-style signature: base64(HMAC-SHA256(key, url + body))."""
    digest = hmac.new(key.encode("utf-8"), url.encode("utf-8") + body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_payment_event(
    *,
    payment_id: str = "pay_001",
    status: str = "COMPLETED",
    amount: Any = 5000,
    currency: str = "CAD",
    note: str | None = "teamSlug=team-falcon",
    event_type: str = "payment.created",
    event_id: str = "evt_001",
    camel_case: bool = True,
) -> dict[str, Any]:
    """Square payment event envelope with the payment at data.object.payment."""
    if camel_case:
        payment: dict[str, Any] = {
            "id": payment_id,
            "status": status,
            "amountMoney": {"amount": amount, "currency": currency},
            "note": note,
            "createdAt": "2025-03-01T12:00:00.000Z",
            "receiptUrl": f"https://squareup.com/receipt/preview/{payment_id}",
            "customerDetails": {"emailAddress": "donor@example.com"},
        }
    else:
        payment = {
            "id": payment_id,
            "status": status,
            "amount_money": {"amount": amount, "currency": currency},
            "note": note,
            "created_at": "2025-03-01T12:00:00.000Z",
            "receipt_url": f"https://squareup.com/receipt/preview/{payment_id}",
            "buyer_email_address": "donor@example.com",
        }
    return {
        "merchant_id": "MERCHANT1",
        "type": event_type,
        "event_id": event_id,
        "created_at": "2025-03-01T12:00:01.000Z",
        "data": {"type": "payment", "id": payment_id, "object": {"payment": payment}},
    }


@pytest.fixture
def make_payment_event() -> Callable[..., dict[str, Any]]:
    """Factory for Square payment webhook events."""
    return build_payment_event


@pytest.fixture
def signed_body() -> Callable[[dict[str, Any]], tuple[bytes, str]]:
    """Serialize an event and return ``(body, signature)``."""

    def _signed(event: dict[str, Any]) -> tuple[bytes, str]:
        body = json.dumps(event).encode("utf-8")
        return body, sign(body)

    return _signed


@pytest.fixture
def post_webhook(client: Any, signed_body: Callable[[dict[str, Any]], tuple[bytes, str]]) -> Callable[..., Any]:
    """POST a signed event to the webhook route and return the response."""

    def _post(event: dict[str, Any], signature: str | None = None) -> Any:
        body, valid_signature = signed_body(event)
        return client.post(
            "/api/square/webhook",
            content=body,
            headers={
                "Content-Type": "application/json",
                "x-square-hmacsha256-signature": signature or valid_signature,
            },
        )

    return _post
