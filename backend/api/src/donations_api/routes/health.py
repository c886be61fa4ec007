"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter

from donations.config import get_settings
from donations_api.models.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    summary="Health check",
    response_model=HealthResponse,
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        timestamp=datetime.now(UTC).isoformat(),
        environment=get_settings().environment,
    )
