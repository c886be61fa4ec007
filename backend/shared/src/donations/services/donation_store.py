"""Durable, idempotent storage of donation records.

One blob per Square payment id under ``<prefix>/payments/<id>.json``. A
second write for the same id overwrites the first (or is a no-op under the
``create_if_absent`` policy), so redelivered webhooks never duplicate a
donation.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from urllib.parse import quote

from pydantic import ValidationError

from donations.models.donation import DonationRecord
from donations.models.enums import WritePolicy
from donations.services.blob_store import BlobExistsError, BlobStore, BlobStoreError
from donations.utils.logging import get_logger, log_donation_operation

logger = get_logger(__name__)


class DonationStoreError(Exception):
    """Raised when a donation record cannot be read or written."""

    pass


@dataclass(frozen=True)
class UpsertResult:
    """What an upsert left in storage."""

    record: DonationRecord
    previous: DonationRecord | None = None
    written: bool = True

    @property
    def created(self) -> bool:
        return self.previous is None


class DonationStore:
    """Per-payment donation records in blob storage.

    Usage:
        store = DonationStore(get_blob_store())
        result = store.upsert(record)
        for donation in store.scan_by_team("team-falcon"):
            ...
    """

    def __init__(
        self,
        blob_store: BlobStore,
        prefix: str = "donations",
        write_policy: WritePolicy = WritePolicy.OVERWRITE,
    ) -> None:
        self._blobs = blob_store
        self.prefix = prefix.strip("/")
        self.write_policy = write_policy

    @property
    def payments_prefix(self) -> str:
        return f"{self.prefix}/payments/"

    def _key(self, payment_id: str) -> str:
        return f"{self.payments_prefix}{quote(payment_id, safe='')}.json"

    def _load(self, key: str) -> DonationRecord | None:
        try:
            body = self._blobs.get(key)
        except BlobStoreError as e:
            raise DonationStoreError(f"Failed to read donation {key}: {e}") from e
        if body is None:
            return None
        return DonationRecord.model_validate_json(body)

    def get(self, payment_id: str) -> DonationRecord | None:
        """Get a donation by payment id.

        Raises:
            DonationStoreError: If the blob cannot be read or parsed.
        """
        key = self._key(payment_id)
        try:
            return self._load(key)
        except ValidationError as e:
            raise DonationStoreError(f"Corrupt donation record {key}: {e}") from e

    def upsert(self, record: DonationRecord) -> UpsertResult:
        """Store a donation, keyed by its payment id.

        Under the overwrite policy the new record replaces any previous one,
        keeping the previous ``counted_cents`` marker so totals are not
        counted twice. Under ``create_if_absent`` an existing record is left
        untouched.

        Args:
            record: Donation to store

        Returns:
            UpsertResult with the record now in storage and the previous one.

        Raises:
            DonationStoreError: If the write fails.
        """
        previous = self.get(record.id)

        if previous is not None and self.write_policy is WritePolicy.CREATE_IF_ABSENT:
            log_donation_operation(
                logger,
                "upsert_donation",
                payment_id=record.id,
                team_ref=previous.team_ref,
                result="duplicate",
            )
            return UpsertResult(record=previous, previous=previous, written=False)

        to_store = record.model_copy(
            update={
                "counted_cents": previous.counted_cents if previous else 0,
                "counted_team_ref": previous.counted_team_ref if previous else None,
            }
        )
        try:
            self._blobs.put(
                self._key(record.id),
                to_store.to_json(),
                overwrite=self.write_policy is WritePolicy.OVERWRITE,
            )
        except BlobExistsError:
            # Lost a create race with a concurrent delivery of the same payment
            existing = self.get(record.id) or to_store
            log_donation_operation(
                logger,
                "upsert_donation",
                payment_id=record.id,
                result="duplicate",
            )
            return UpsertResult(record=existing, previous=existing, written=False)
        except BlobStoreError as e:
            log_donation_operation(
                logger,
                "upsert_donation",
                payment_id=record.id,
                team_ref=record.team_ref,
                amount_cents=record.amount_cents,
                error=str(e),
            )
            raise DonationStoreError(f"Failed to store donation {record.id}: {e}") from e

        log_donation_operation(
            logger,
            "upsert_donation",
            payment_id=record.id,
            team_ref=record.team_ref,
            amount_cents=record.amount_cents,
            result="replaced" if previous else "created",
        )
        return UpsertResult(record=to_store, previous=previous)

    def mark_counted(self, payment_id: str, team_ref: str | None, cents: int) -> None:
        """Record how many cents of a donation the totals snapshot reflects.

        Args:
            payment_id: Square payment id
            team_ref: Team the cents were added to (None when nothing counted)
            cents: Cents now reflected in the snapshot

        Raises:
            DonationStoreError: If the record is missing or cannot be written.
        """
        record = self.get(payment_id)
        if record is None:
            raise DonationStoreError(f"Donation {payment_id} not found")
        team_ref = team_ref if cents else None
        if record.counted_cents == cents and record.counted_team_ref == team_ref:
            return

        updated = record.model_copy(update={"counted_cents": cents, "counted_team_ref": team_ref})
        try:
            self._blobs.put(self._key(payment_id), updated.to_json())
        except BlobStoreError as e:
            raise DonationStoreError(f"Failed to mark donation {payment_id}: {e}") from e

    def list_all(self) -> Iterator[DonationRecord]:
        """Iterate every stored donation.

        Each call starts a fresh listing, so the result can be consumed as
        often as needed. Blobs that are not valid donation records are
        logged and skipped.

        Raises:
            DonationStoreError: If the listing itself fails.
        """
        try:
            for blob in self._blobs.iter_blobs(self.payments_prefix):
                if not blob.key.endswith(".json"):
                    continue
                try:
                    record = self._load(blob.key)
                except ValidationError as e:
                    logger.warning("Skipping invalid donation blob %s: %s", blob.key, e)
                    continue
                if record is not None:
                    yield record
        except BlobStoreError as e:
            raise DonationStoreError(f"Failed to list donations: {e}") from e

    def scan_by_team(self, team_ref: str) -> Iterator[DonationRecord]:
        """Iterate stored donations attributed to one team."""
        return (record for record in self.list_all() if record.team_ref == team_ref)
