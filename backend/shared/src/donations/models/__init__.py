"""Pydantic models for donation data entities."""

from .donation import DonationRecord
from .enums import (
    BlobBackend,
    SignatureMode,
    SquareEnvironment,
    TotalsStrategy,
    WebhookOutcome,
    WritePolicy,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    DonationError,
    ErrorCode,
    ToolError,
    get_user_friendly_square_message,
)
from .square_webhook import (
    SquareMoney,
    SquarePayment,
    SquareWebhookEvent,
    parse_minor_units,
    parse_team_ref,
)
from .totals import (
    DriftReport,
    Leaderboard,
    LeaderboardEntry,
    RebuildReport,
    Team,
    TeamDrift,
)
from .webhook import WebhookResult

__all__ = [
    # Enums
    "BlobBackend",
    "SignatureMode",
    "SquareEnvironment",
    "TotalsStrategy",
    "WebhookOutcome",
    "WritePolicy",
    # Donation
    "DonationRecord",
    # Square payloads
    "SquareMoney",
    "SquarePayment",
    "SquareWebhookEvent",
    "parse_minor_units",
    "parse_team_ref",
    # Totals
    "DriftReport",
    "Leaderboard",
    "LeaderboardEntry",
    "RebuildReport",
    "Team",
    "TeamDrift",
    # Webhook
    "WebhookResult",
    # Errors
    "DonationError",
    "ErrorCode",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ToolError",
    "get_user_friendly_square_message",
]
