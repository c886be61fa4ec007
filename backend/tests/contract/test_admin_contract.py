"""Contract tests for the operator totals endpoints.

All admin endpoints require the X-Admin-Token header and fail closed when
no ADMIN_TOKEN is configured.
"""

from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.status import HTTP_200_OK, HTTP_401_UNAUTHORIZED

from donations.config import reset_settings
from donations.models.errors import ErrorCode
from donations.services.blob_store import get_blob_store

from conftest import TEST_ADMIN_TOKEN

ADMIN_HEADERS = {"X-Admin-Token": TEST_ADMIN_TOKEN}


class TestAdminAuth:
    """Token enforcement."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [("post", "/api/admin/totals/rebuild"), ("get", "/api/admin/totals/drift")],
    )
    def test_missing_token(self, client: TestClient, method: str, path: str):
        response = getattr(client, method)(path)

        assert response.status_code == HTTP_401_UNAUTHORIZED
        assert response.json()["error_code"] == ErrorCode.ADMIN_UNAUTHORIZED.value

    def test_wrong_token(self, client: TestClient):
        response = client.post("/api/admin/totals/rebuild", headers={"X-Admin-Token": "nope"})

        assert response.status_code == HTTP_401_UNAUTHORIZED

    def test_no_configured_token_fails_closed(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.delenv("ADMIN_TOKEN")
        reset_settings()

        response = client.post("/api/admin/totals/rebuild", headers=ADMIN_HEADERS)

        assert response.status_code == HTTP_401_UNAUTHORIZED


class TestRebuild:
    """POST /api/admin/totals/rebuild."""

    def test_rebuild_after_drift(
        self, client: TestClient, post_webhook: Callable[..., Any], make_payment_event
    ):
        """A corrupted snapshot is replaced by totals recomputed from records."""
        post_webhook(make_payment_event(payment_id="a", amount=5000))
        post_webhook(make_payment_event(payment_id="b", note="teamSlug=team-lion", amount=700))
        get_blob_store().put("donations/totals.json", b'{"team-falcon": 1}')

        drift = client.get("/api/admin/totals/drift", headers=ADMIN_HEADERS).json()
        assert drift["inSync"] is False

        response = client.post("/api/admin/totals/rebuild", headers=ADMIN_HEADERS)

        assert response.status_code == HTTP_200_OK
        report = response.json()
        assert report["totals"] == {"team-falcon": 5000, "team-lion": 700}
        assert report["totalRecords"] == 2
        assert report["written"] is True

        leaderboard = client.get("/api/leaderboard").json()["leaderboard"]
        assert {e["teamRef"]: e["totalCents"] for e in leaderboard}["team-falcon"] == 5000
        assert client.get("/api/admin/totals/drift", headers=ADMIN_HEADERS).json() == {
            "inSync": True,
            "teams": [],
        }

    def test_dry_run(self, client: TestClient, post_webhook: Callable[..., Any], make_payment_event):
        post_webhook(make_payment_event())
        get_blob_store().put("donations/totals.json", b"{}")

        response = client.post("/api/admin/totals/rebuild?dry_run=true", headers=ADMIN_HEADERS)

        assert response.json()["written"] is False
        assert client.get("/api/teams/team-falcon").json()["totalCents"] == 0


class TestDrift:
    """GET /api/admin/totals/drift."""

    def test_reports_mismatched_teams(
        self, client: TestClient, post_webhook: Callable[..., Any], make_payment_event
    ):
        post_webhook(make_payment_event())
        get_blob_store().put("donations/totals.json", b'{"team-falcon": 4000}')

        response = client.get("/api/admin/totals/drift", headers=ADMIN_HEADERS)

        assert response.status_code == HTTP_200_OK
        assert response.json() == {
            "inSync": False,
            "teams": [{"teamRef": "team-falcon", "servedCents": 4000, "scannedCents": 5000}],
        }
