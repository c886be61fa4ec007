"""FastAPI dependency injection providers for shared services.

Services are built lazily from ``get_settings()`` and cached with
@lru_cache, so every request reuses the same blob store client.

Usage in routes:
    from donations_api.dependencies import get_totals_aggregator

    @router.get("/teams")
    async def list_teams(totals: TotalsAggregator = Depends(get_totals_aggregator)):
        ...

Service Dependency Graph:
    BlobStore (singleton via get_blob_store)
        ├── DonationStore
        │       └── TotalsAggregator
        │               ├── LeaderboardService (+ TeamDirectory)
        │               └── WebhookHandler (+ SquareService)
        └── TotalsAggregator (snapshot blob)

Testing:
    Use reset_services() to clear cached instances between tests.
"""

import hmac
from functools import lru_cache

from fastapi import Header

from donations.config import get_settings, reset_settings
from donations.models.errors import DonationError, ErrorCode
from donations.services.blob_store import get_blob_store, reset_blob_store
from donations.services.donation_store import DonationStore
from donations.services.leaderboard import LeaderboardService
from donations.services.square_service import get_square_service
from donations.services.ssm_service import reset_ssm_service
from donations.services.team_directory import get_team_directory
from donations.services.totals import TotalsAggregator, create_totals_aggregator
from donations.services.webhook_handler import WebhookHandler
from donations.utils.logging import get_logger

logger = get_logger(__name__)


@lru_cache
def get_donation_store() -> DonationStore:
    """Get cached DonationStore instance."""
    settings = get_settings()
    return DonationStore(
        get_blob_store(),
        prefix=settings.blob_prefix,
        write_policy=settings.donation_write_policy,
    )


@lru_cache
def get_totals_aggregator() -> TotalsAggregator:
    """Get cached TotalsAggregator for the configured strategy."""
    return create_totals_aggregator(get_settings(), get_donation_store(), get_blob_store())


@lru_cache
def get_leaderboard_service() -> LeaderboardService:
    """Get cached LeaderboardService instance."""
    return LeaderboardService(get_team_directory(), get_totals_aggregator())


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler instance.

    Returns:
        WebhookHandler wired to the Square service, donation store and totals.
    """
    return WebhookHandler(
        settings=get_settings(),
        square_service=get_square_service(),
        store=get_donation_store(),
        totals=get_totals_aggregator(),
    )


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    """Reject the request unless it carries the configured admin token.

    Fails closed: with no ADMIN_TOKEN configured every request is rejected.

    Raises:
        DonationError: ADMIN_UNAUTHORIZED when the token is missing or wrong.
    """
    expected = get_settings().admin_token
    if not expected or not x_admin_token:
        raise DonationError(ErrorCode.ADMIN_UNAUTHORIZED)
    if not hmac.compare_digest(expected.encode("utf-8"), x_admin_token.encode("utf-8")):
        logger.warning("Rejected admin request with invalid token")
        raise DonationError(ErrorCode.ADMIN_UNAUTHORIZED)


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets settings and the underlying blob store singleton.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    get_donation_store.cache_clear()
    get_totals_aggregator.cache_clear()
    get_leaderboard_service.cache_clear()
    get_webhook_handler.cache_clear()

    get_square_service.cache_clear()
    get_team_directory.cache_clear()
    reset_ssm_service()
    reset_blob_store()
    reset_settings()
