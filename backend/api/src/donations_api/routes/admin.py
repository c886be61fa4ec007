"""Operator endpoints for the totals snapshot.

Provides REST endpoints for:
- Rebuilding totals from every stored payment record
- Reporting drift between the served totals and a full scan

**Requires the X-Admin-Token header** (matching ADMIN_TOKEN). With no token
configured the endpoints reject every request.
"""

from fastapi import APIRouter, Depends, Query

from donations.models.errors import DonationError, ErrorCode
from donations.models.totals import DriftReport, RebuildReport
from donations.services.totals import TotalsAggregator, TotalsError
from donations.utils.logging import get_logger
from donations_api.dependencies import get_totals_aggregator, require_admin

logger = get_logger(__name__)

router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin)])


@router.post(
    "/admin/totals/rebuild",
    summary="Rebuild team totals",
    description="""
Recompute every team total from the stored payment records and overwrite
the totals snapshot. Use after a failed webhook or suspected lost update.

With `dry_run=true` the totals are computed and reported but nothing is
written.
""",
    response_model=RebuildReport,
    responses={
        401: {"description": "Missing or invalid admin token"},
        503: {"description": "Storage unavailable"},
    },
)
async def rebuild_totals(
    dry_run: bool = Query(default=False, description="Report without writing"),
    totals: TotalsAggregator = Depends(get_totals_aggregator),
) -> RebuildReport:
    try:
        report = totals.rebuild(dry_run=dry_run)
    except TotalsError as e:
        logger.error("Totals rebuild failed: %s", e)
        raise DonationError(ErrorCode.TOTALS_ERROR, details={"error": str(e)}) from e

    logger.info(
        "Totals rebuild requested (dry_run=%s): %d records, %d teams",
        dry_run,
        report.total_records,
        report.team_count,
    )
    return report


@router.get(
    "/admin/totals/drift",
    summary="Check totals drift",
    description="Compare the served totals with a full recompute from payment records.",
    response_model=DriftReport,
    responses={
        401: {"description": "Missing or invalid admin token"},
        503: {"description": "Storage unavailable"},
    },
)
async def totals_drift(
    totals: TotalsAggregator = Depends(get_totals_aggregator),
) -> DriftReport:
    try:
        return totals.drift()
    except TotalsError as e:
        logger.error("Totals drift check failed: %s", e)
        raise DonationError(ErrorCode.TOTALS_ERROR, details={"error": str(e)}) from e
