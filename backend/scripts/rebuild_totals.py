#!/usr/bin/env python3
"""
Rebuild team totals from stored payment records.

Scans every ``<prefix>/payments/*.json`` record, recomputes the per-team
totals and overwrites ``<prefix>/totals.json``. Records without a team or
with a non-positive amount are counted as skipped. Storage settings come
from the usual environment variables (BLOB_BACKEND, BLOB_BUCKET, ...).

Usage:
    uv run python scripts/rebuild_totals.py --env dev
    uv run python scripts/rebuild_totals.py --env dev --dry-run
    BLOB_BACKEND=local uv run python scripts/rebuild_totals.py --env dev
"""

import argparse
import sys

from donations.config import ConfigError, Settings
from donations.models.enums import TotalsStrategy
from donations.services.blob_store import create_blob_store
from donations.services.donation_store import DonationStore
from donations.services.totals import SnapshotTotalsAggregator, TotalsError
from donations.utils.logging import configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Rebuild the team totals snapshot from payment records"
    )
    parser.add_argument(
        "--env",
        required=True,
        choices=["dev", "prod"],
        help="Environment to rebuild",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the recomputed totals without writing them",
    )
    args = parser.parse_args()

    configure_logging()

    try:
        settings = Settings.from_env(environment=args.env)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if settings.totals_strategy is TotalsStrategy.SCAN:
        print("Note: TOTALS_STRATEGY=scan; the snapshot is rebuilt but not served.")

    blob_store = create_blob_store(settings)
    store = DonationStore(blob_store, prefix=settings.blob_prefix)
    aggregator = SnapshotTotalsAggregator(store, blob_store)

    try:
        report = aggregator.rebuild(dry_run=args.dry_run)
    except TotalsError as e:
        print(f"Rebuild failed: {e}", file=sys.stderr)
        return 1

    action = "[DRY RUN] " if args.dry_run else ""
    print(f"\n{'='*60}")
    print(f"{action}Totals rebuild for {args.env} ({aggregator.snapshot_key})")
    print(f"{'='*60}")
    print(f"  Records scanned:  {report.total_records}")
    print(f"  Counted:          {report.processed}")
    print(f"  Skipped:          {report.skipped}")
    print(f"  Teams:            {report.team_count}")
    if not args.dry_run:
        print(f"  Markers updated:  {report.markers_updated}")
    for team_ref, cents in sorted(report.totals.items()):
        print(f"    {team_ref}: {cents / 100:.2f}")
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
