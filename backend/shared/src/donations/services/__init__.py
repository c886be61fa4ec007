"""Donation services: storage, totals, Square integration and webhook handling."""

from .blob_store import (
    BlobExistsError,
    BlobStore,
    BlobStoreError,
    LocalBlobStore,
    S3BlobStore,
    get_blob_store,
)
from .donation_store import DonationStore, DonationStoreError, UpsertResult
from .leaderboard import LeaderboardService
from .square_service import (
    SquareNotConfiguredError,
    SquareService,
    SquareServiceError,
    get_square_service,
)
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .team_directory import TeamDirectory, get_team_directory
from .totals import (
    ScanTotalsAggregator,
    SnapshotTotalsAggregator,
    TotalsAggregator,
    TotalsCache,
    TotalsError,
    compute_totals,
    create_totals_aggregator,
)
from .webhook_handler import WebhookHandler

__all__ = [
    "BlobExistsError",
    "BlobStore",
    "BlobStoreError",
    "LocalBlobStore",
    "S3BlobStore",
    "get_blob_store",
    "DonationStore",
    "DonationStoreError",
    "UpsertResult",
    "LeaderboardService",
    "SquareNotConfiguredError",
    "SquareService",
    "SquareServiceError",
    "get_square_service",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "TeamDirectory",
    "get_team_directory",
    "ScanTotalsAggregator",
    "SnapshotTotalsAggregator",
    "TotalsAggregator",
    "TotalsCache",
    "TotalsError",
    "compute_totals",
    "create_totals_aggregator",
    "WebhookHandler",
]
