"""Per-team donation totals.

Two strategies share the ``TotalsAggregator`` interface:

- ``SnapshotTotalsAggregator``: a single ``<prefix>/totals.json`` blob
  incremented on every counted donation. Cheap to read; a concurrent
  increment can be lost, which ``rebuild()`` repairs.
- ``ScanTotalsAggregator``: recomputes totals from every payment record on
  each read. Always correct, cost grows with the number of donations.

Every record carries a counted marker (``counted_cents`` and
``counted_team_ref``) saying what the snapshot already reflects, so a
redelivered webhook, a retry after a failed snapshot write, or a record
whose team changed on overwrite all converge on the right totals.
"""

import json
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from donations.config import Settings
from donations.models.donation import DonationRecord
from donations.models.enums import TotalsStrategy
from donations.models.totals import DriftReport, RebuildReport, TeamDrift
from donations.services.blob_store import BlobStore, BlobStoreError
from donations.services.donation_store import DonationStore, DonationStoreError
from donations.utils.logging import get_logger, log_donation_operation

logger = get_logger(__name__)

# Snapshot must never be served stale by an intermediate cache
SNAPSHOT_CACHE_CONTROL = "max-age=0"


class TotalsError(Exception):
    """Raised when totals cannot be read or written."""

    pass


def compute_totals(records: Iterable[DonationRecord]) -> dict[str, int]:
    """Sum countable cents per team.

    Records without a team or with a non-positive amount contribute nothing,
    and no team appears with a zero total unless it has countable records.

    Args:
        records: Donation records to aggregate

    Returns:
        Mapping of team_ref to total cents
    """
    totals: dict[str, int] = {}
    for record in records:
        cents = record.countable_cents
        if cents and record.team_ref:
            totals[record.team_ref] = totals.get(record.team_ref, 0) + cents
    return totals


class TotalsCache:
    """Time-bounded in-process cache for the totals mapping.

    A TTL of zero disables caching entirely.
    """

    def __init__(self, ttl_seconds: float = 0.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: dict[str, int] | None = None
        self._expires_at = 0.0

    def get(self) -> dict[str, int] | None:
        if self._value is None or self._clock() >= self._expires_at:
            return None
        return dict(self._value)

    def set(self, value: dict[str, int]) -> None:
        if self.ttl_seconds <= 0:
            return
        self._value = dict(value)
        self._expires_at = self._clock() + self.ttl_seconds

    def invalidate(self) -> None:
        self._value = None
        self._expires_at = 0.0


class TotalsAggregator(ABC):
    """Maintains and serves per-team totals."""

    def __init__(self, store: DonationStore, cache: TotalsCache | None = None) -> None:
        self.store = store
        self.cache = cache or TotalsCache()

    @abstractmethod
    def totals(self) -> dict[str, int]:
        """Current mapping of team_ref to total cents."""
        raise NotImplementedError

    def total_for(self, team_ref: str) -> int:
        return self.totals().get(team_ref, 0)

    @abstractmethod
    def record_donation(self, record: DonationRecord) -> int:
        """Fold a stored donation into the totals.

        Returns:
            The net change in cents applied across all teams.
        """
        raise NotImplementedError

    @abstractmethod
    def rebuild(self, *, dry_run: bool = False) -> RebuildReport:
        raise NotImplementedError

    @abstractmethod
    def drift(self) -> DriftReport:
        raise NotImplementedError

    def _scan(self) -> tuple[list[DonationRecord], dict[str, int]]:
        try:
            records = list(self.store.list_all())
        except DonationStoreError as e:
            raise TotalsError(f"Failed to scan donations: {e}") from e
        return records, compute_totals(records)


class SnapshotTotalsAggregator(TotalsAggregator):
    """Totals kept in a single JSON snapshot blob.

    Usage:
        aggregator = SnapshotTotalsAggregator(store, blob_store)
        aggregator.record_donation(result.record)
        aggregator.totals()  # {"team-falcon": 2500}
    """

    def __init__(
        self,
        store: DonationStore,
        blob_store: BlobStore,
        cache: TotalsCache | None = None,
    ) -> None:
        super().__init__(store, cache)
        self._blobs = blob_store

    @property
    def snapshot_key(self) -> str:
        return f"{self.store.prefix}/totals.json"

    def _read_snapshot(self) -> dict[str, int]:
        try:
            body = self._blobs.get(self.snapshot_key)
        except BlobStoreError as e:
            raise TotalsError(f"Failed to read totals snapshot: {e}") from e
        if body is None:
            return {}

        try:
            data = json.loads(body)
        except ValueError as e:
            raise TotalsError(f"Corrupt totals snapshot: {e}") from e
        if not isinstance(data, dict):
            raise TotalsError("Corrupt totals snapshot: expected a JSON object")

        totals: dict[str, int] = {}
        for team_ref, cents in data.items():
            if isinstance(cents, bool) or not isinstance(cents, int | float):
                logger.warning("Ignoring non-numeric total for %s in snapshot", team_ref)
                continue
            if isinstance(cents, float) and not math.isfinite(cents):
                logger.warning("Ignoring non-finite total for %s in snapshot", team_ref)
                continue
            totals[str(team_ref)] = max(int(cents), 0)
        return totals

    def _write_snapshot(self, totals: dict[str, int]) -> None:
        body = json.dumps(totals, indent=2, sort_keys=True).encode("utf-8")
        try:
            self._blobs.put(
                self.snapshot_key,
                body,
                overwrite=True,
                cache_control=SNAPSHOT_CACHE_CONTROL,
            )
        except BlobStoreError as e:
            raise TotalsError(f"Failed to write totals snapshot: {e}") from e
        finally:
            self.cache.invalidate()

    def totals(self) -> dict[str, int]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        totals = self._read_snapshot()
        self.cache.set(totals)
        return totals

    def record_donation(self, record: DonationRecord) -> int:
        """Apply the difference between what a record counts and what it counted.

        Args:
            record: The donation as stored (with its counted marker)

        Returns:
            Net cents added to the snapshot (0 for a duplicate delivery)

        Raises:
            TotalsError: If the snapshot or the record marker cannot be updated.
        """
        if record.is_counted:
            return 0

        cents = record.countable_cents
        target = record.team_ref if cents else None

        totals = self._read_snapshot()
        if record.counted_cents and record.counted_team_ref:
            remaining = totals.get(record.counted_team_ref, 0) - record.counted_cents
            totals[record.counted_team_ref] = max(remaining, 0)
        if target:
            totals[target] = totals.get(target, 0) + cents

        self._write_snapshot(totals)

        try:
            self.store.mark_counted(record.id, target, cents)
        except DonationStoreError as e:
            # Snapshot already reflects the record; a retry would count it again
            log_donation_operation(
                logger,
                "mark_counted",
                payment_id=record.id,
                team_ref=target,
                amount_cents=cents,
                error=str(e),
            )
            raise TotalsError(f"Failed to mark donation {record.id} as counted: {e}") from e

        delta = cents - record.counted_cents
        log_donation_operation(
            logger,
            "increment_total",
            payment_id=record.id,
            team_ref=target,
            amount_cents=delta,
            team_total=totals.get(target or "", 0),
        )
        return delta

    def rebuild(self, *, dry_run: bool = False) -> RebuildReport:
        """Recompute the snapshot from every stored payment record.

        Overwrites ``totals.json`` and repairs each record whose counted
        marker disagrees with what it now contributes.

        Args:
            dry_run: Compute and report without writing anything

        Raises:
            TotalsError: If the scan or any write fails.
        """
        records, totals = self._scan()
        processed = sum(1 for record in records if record.countable_cents)
        report = RebuildReport(
            total_records=len(records),
            processed=processed,
            skipped=len(records) - processed,
            team_count=len(totals),
            totals=totals,
        )
        if dry_run:
            return report

        self._write_snapshot(totals)

        markers_updated = 0
        for record in records:
            if record.is_counted:
                continue
            cents = record.countable_cents
            try:
                self.store.mark_counted(record.id, record.team_ref if cents else None, cents)
            except DonationStoreError as e:
                raise TotalsError(f"Failed to update marker for {record.id}: {e}") from e
            markers_updated += 1

        logger.info(
            "Rebuilt totals snapshot: %d records, %d teams, %d markers updated",
            len(records),
            len(totals),
            markers_updated,
        )
        return report.model_copy(update={"markers_updated": markers_updated, "written": True})

    def drift(self) -> DriftReport:
        served = self._read_snapshot()
        _, scanned = self._scan()
        teams = [
            TeamDrift(
                team_ref=team_ref,
                served_cents=served.get(team_ref, 0),
                scanned_cents=scanned.get(team_ref, 0),
            )
            for team_ref in sorted(set(served) | set(scanned))
            if served.get(team_ref, 0) != scanned.get(team_ref, 0)
        ]
        if teams:
            logger.warning("Totals snapshot drift detected for %d team(s)", len(teams))
        return DriftReport(in_sync=not teams, teams=teams)


class ScanTotalsAggregator(TotalsAggregator):
    """Totals recomputed from payment records on every read."""

    def totals(self) -> dict[str, int]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        _, totals = self._scan()
        self.cache.set(totals)
        return totals

    def record_donation(self, record: DonationRecord) -> int:
        # Nothing to maintain; the next read sees the stored record
        self.cache.invalidate()
        return 0

    def rebuild(self, *, dry_run: bool = False) -> RebuildReport:
        records, totals = self._scan()
        processed = sum(1 for record in records if record.countable_cents)
        return RebuildReport(
            total_records=len(records),
            processed=processed,
            skipped=len(records) - processed,
            team_count=len(totals),
            totals=totals,
        )

    def drift(self) -> DriftReport:
        return DriftReport(in_sync=True)


def create_totals_aggregator(
    settings: Settings,
    store: DonationStore,
    blob_store: BlobStore,
) -> TotalsAggregator:
    """Create the totals aggregator selected by ``TOTALS_STRATEGY``."""
    cache = TotalsCache(settings.totals_cache_ttl_seconds)
    if settings.totals_strategy is TotalsStrategy.SCAN:
        return ScanTotalsAggregator(store, cache)
    return SnapshotTotalsAggregator(store, blob_store, cache)
