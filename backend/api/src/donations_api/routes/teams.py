"""Team endpoints: listing, detail and donation checkout.

Provides REST endpoints for:
- Listing teams with their totals (public)
- Getting one team with its total (public)
- Starting a Square checkout for a team (public)
"""

from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, Request

from donations.config import get_settings
from donations.models.errors import (
    SQUARE_CONFIGURATION_CATEGORIES,
    DonationError,
    ErrorCode,
    get_user_friendly_square_message,
)
from donations.models.totals import Team
from donations.services.leaderboard import progress_percent
from donations.services.square_service import (
    SquareNotConfiguredError,
    SquareService,
    SquareServiceError,
    get_square_service,
)
from donations.services.team_directory import TeamDirectory, get_team_directory
from donations.services.totals import TotalsAggregator, TotalsError
from donations.utils.logging import get_logger
from donations_api.dependencies import get_totals_aggregator
from donations_api.models.teams import (
    DonateRequest,
    DonateResponse,
    TeamListResponse,
    TeamSummary,
)

logger = get_logger(__name__)

router = APIRouter(tags=["teams"])

CENT = Decimal("0.01")


def _read_totals(totals: TotalsAggregator) -> dict[str, int]:
    try:
        return totals.totals()
    except TotalsError as e:
        logger.error("Failed to read totals: %s", e)
        raise DonationError(ErrorCode.TOTALS_ERROR) from e


def _get_team_or_404(directory: TeamDirectory, slug: str) -> Team:
    team = directory.get(slug)
    if team is None:
        raise DonationError(
            ErrorCode.TEAM_NOT_FOUND,
            details={"slug": slug},
            message=f"Team not found for slug: {slug}",
        )
    return team


def _summary(team: Team, total_cents: int) -> TeamSummary:
    return TeamSummary.from_team(team, total_cents, progress_percent(total_cents, team.goal_cents))


def amount_to_cents(amount: Decimal | None) -> int:
    """Convert a donor-entered major-unit amount to cents.

    Raises:
        DonationError: INVALID_AMOUNT unless the amount is a positive number
            of at least one cent.
    """
    if amount is None or not amount.is_finite() or amount <= 0:
        raise DonationError(ErrorCode.INVALID_AMOUNT)
    cents = int((amount / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents <= 0:
        raise DonationError(ErrorCode.INVALID_AMOUNT)
    return cents


@router.get(
    "/teams",
    summary="List teams",
    description="All fundraising teams in display order, with amounts raised in cents.",
    response_model=TeamListResponse,
)
async def list_teams(
    directory: TeamDirectory = Depends(get_team_directory),
    totals: TotalsAggregator = Depends(get_totals_aggregator),
) -> TeamListResponse:
    current = _read_totals(totals)
    return TeamListResponse(
        teams=[_summary(team, current.get(team.slug, 0)) for team in directory.all()]
    )


@router.get(
    "/teams/{slug}",
    summary="Get team",
    response_model=TeamSummary,
    responses={404: {"description": "Unknown team slug"}},
)
async def get_team(
    slug: str,
    directory: TeamDirectory = Depends(get_team_directory),
    totals: TotalsAggregator = Depends(get_totals_aggregator),
) -> TeamSummary:
    team = _get_team_or_404(directory, slug)
    return _summary(team, _read_totals(totals).get(team.slug, 0))


@router.post(
    "/teams/{slug}/donate",
    summary="Start a donation checkout",
    description="""
Create a Square hosted checkout link for a donation to a team.

**Public endpoint** - no authentication required.

`amount` is in major units (e.g. `25` for $25.00). The payment note carries
`teamSlug=<slug>` so the webhook can attribute the donation.
""",
    response_model=DonateResponse,
    responses={
        400: {"description": "Non-positive amount or unsupported currency"},
        404: {"description": "Unknown team slug"},
        502: {"description": "Square did not return a payment link"},
    },
)
async def donate_to_team(
    slug: str,
    body: DonateRequest,
    request: Request,
    directory: TeamDirectory = Depends(get_team_directory),
    square: SquareService = Depends(get_square_service),
) -> DonateResponse:
    settings = get_settings()
    team = _get_team_or_404(directory, slug)

    cents = amount_to_cents(body.amount)
    currency = (body.currency or settings.square_currency).upper()
    if currency != settings.square_currency:
        raise DonationError(
            ErrorCode.UNSUPPORTED_CURRENCY,
            details={"currency": currency},
            message=f"Currency must be {settings.square_currency}.",
        )

    base_url = settings.public_base_url or str(request.base_url)
    redirect_url = f"{base_url.rstrip('/')}/teams/{team.slug}?thankyou=1"

    try:
        url = square.create_payment_link(
            amount_cents=cents,
            currency=currency,
            team_name=team.name,
            note=f"teamSlug={team.slug}",
            redirect_url=redirect_url,
        )
    except SquareNotConfiguredError as e:
        logger.error("Square is not configured: %s", e)
        raise DonationError(ErrorCode.SQUARE_NOT_CONFIGURED) from e
    except SquareServiceError as e:
        code = (
            ErrorCode.SQUARE_AUTH_ERROR
            if e.category in SQUARE_CONFIGURATION_CATEGORIES
            else ErrorCode.SQUARE_API_ERROR
        )
        raise DonationError(
            code,
            details={"category": e.category or "", "code": e.code or ""},
            message=get_user_friendly_square_message(e.category),
            status_code=e.status_code,
        ) from e

    return DonateResponse(url=url)
