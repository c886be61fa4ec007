"""Standard error codes for the donation backend.

All API routes use these error codes for consistent error responses.
The webhook route is the exception: it always answers with the
``{"ok": ..., ...}`` acknowledgement shape Square expects.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Team / donation error codes (ERR_001-ERR_003)
    TEAM_NOT_FOUND = "ERR_001"
    INVALID_AMOUNT = "ERR_002"
    UNSUPPORTED_CURRENCY = "ERR_003"

    # Admin error codes (ERR_ADMIN_001)
    ADMIN_UNAUTHORIZED = "ERR_ADMIN_001"

    # Square error codes (ERR_SQUARE_001-ERR_SQUARE_003)
    SQUARE_API_ERROR = "ERR_SQUARE_001"
    SQUARE_AUTH_ERROR = "ERR_SQUARE_002"
    SQUARE_NOT_CONFIGURED = "ERR_SQUARE_003"

    # Storage error codes (ERR_STORE_001)
    TOTALS_ERROR = "ERR_STORE_001"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.TEAM_NOT_FOUND: "Team not found",
    ErrorCode.INVALID_AMOUNT: "Please provide a positive donation amount.",
    ErrorCode.UNSUPPORTED_CURRENCY: "Currency is not supported",
    ErrorCode.ADMIN_UNAUTHORIZED: "Admin token missing or invalid",
    ErrorCode.SQUARE_API_ERROR: "Unable to create payment link. Please try again.",
    ErrorCode.SQUARE_AUTH_ERROR: "Payment system configuration error. Please contact support.",
    ErrorCode.SQUARE_NOT_CONFIGURED: "Payment system configuration error. Please contact support.",
    ErrorCode.TOTALS_ERROR: "Team totals are unavailable",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.TEAM_NOT_FOUND: "Check the team slug",
    ErrorCode.INVALID_AMOUNT: "Send an amount greater than zero",
    ErrorCode.UNSUPPORTED_CURRENCY: "Use the campaign currency",
    ErrorCode.ADMIN_UNAUTHORIZED: "Send a valid X-Admin-Token header",
    ErrorCode.SQUARE_API_ERROR: "Try again in a moment",
    ErrorCode.SQUARE_AUTH_ERROR: "Check your payment configuration",
    ErrorCode.SQUARE_NOT_CONFIGURED: "Set SQUARE_ACCESS_TOKEN and SQUARE_LOCATION_ID",
    ErrorCode.TOTALS_ERROR: "Try again later or rebuild totals",
}


class ToolError(BaseModel):
    """Standard error response format for API failures."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
    ) -> "ToolError":
        """Create a ToolError from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error
            message: Optional message overriding the default for the code

        Returns:
            A ToolError with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=message or ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class DonationError(Exception):
    """Exception raised by donation operations.

    Caught by the API exception handler and converted to a ToolError.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        self.status_code = status_code
        super().__init__(self.message)

    def to_tool_error(self) -> ToolError:
        """Convert this exception to a ToolError for API responses."""
        return ToolError.from_code(self.code, self.details, self.message)


# Square error categories that mean our own credentials/configuration are wrong
SQUARE_CONFIGURATION_CATEGORIES: set[str] = {
    "AUTHENTICATION_ERROR",
}


def get_user_friendly_square_message(category: Optional[str]) -> str:
    """Get a donor-facing message for a Square error category.

    Donors never see Square's diagnostic detail. Authentication errors get a
    coarse configuration hint so operators know where to look.

    Args:
        category: The Square error category (e.g., 'AUTHENTICATION_ERROR').

    Returns:
        User-friendly error message.
    """
    if category in SQUARE_CONFIGURATION_CATEGORIES:
        return ERROR_MESSAGES[ErrorCode.SQUARE_AUTH_ERROR]
    return ERROR_MESSAGES[ErrorCode.SQUARE_API_ERROR]
