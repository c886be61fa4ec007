"""API request/response models."""

from .common import (
    HealthResponse,
    ValidationErrorDetail,
    ValidationErrorResponse,
    format_validation_errors,
)
from .teams import DonateRequest, DonateResponse, TeamListResponse, TeamSummary

__all__ = [
    "DonateRequest",
    "DonateResponse",
    "HealthResponse",
    "TeamListResponse",
    "TeamSummary",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
    "format_validation_errors",
]
