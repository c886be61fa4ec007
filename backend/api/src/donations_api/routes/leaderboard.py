"""Public leaderboard endpoint.

Embeddable from any origin and cacheable at the edge for a minute.
"""

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from starlette.status import HTTP_204_NO_CONTENT

from donations.models.errors import DonationError, ErrorCode
from donations.models.totals import Leaderboard
from donations.services.leaderboard import LeaderboardService
from donations.services.totals import TotalsError
from donations.utils.logging import get_logger
from donations_api.dependencies import get_leaderboard_service

logger = get_logger(__name__)

router = APIRouter(tags=["leaderboard"])

LEADERBOARD_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Cache-Control": "public, s-maxage=60, stale-while-revalidate=120",
}

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.get(
    "/leaderboard",
    summary="Get team leaderboard",
    description="""
Teams ranked by amount raised, highest first.

**Public endpoint** - no authentication required, CORS open to any origin.

Every configured team is listed, including teams with no donations yet.
Amounts are in cents.
""",
    response_model=Leaderboard,
    responses={
        200: {"description": "Ranked teams"},
        503: {"description": "Totals unavailable"},
    },
)
async def get_leaderboard(
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> JSONResponse:
    try:
        leaderboard = service.leaderboard()
    except TotalsError as e:
        logger.error("Failed to build leaderboard: %s", e)
        raise DonationError(ErrorCode.TOTALS_ERROR) from e

    return JSONResponse(
        content=leaderboard.model_dump(mode="json", by_alias=True),
        headers=LEADERBOARD_HEADERS,
    )


@router.options("/leaderboard", include_in_schema=False)
async def leaderboard_preflight() -> Response:
    return Response(status_code=HTTP_204_NO_CONTENT, headers=PREFLIGHT_HEADERS)
