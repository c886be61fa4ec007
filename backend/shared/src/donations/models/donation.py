"""Donation record model.

Records are persisted as camelCase JSON, one blob per Square payment id.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DonationRecord(BaseModel):
    """A completed donation, keyed by the Square payment id.

    ``email`` and ``receipt_url`` identify the donor and stay in the private
    per-payment blob; they are never copied into the totals snapshot.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Square payment id")
    team_ref: str | None = Field(
        default=None,
        description="Team slug parsed from the payment note",
        examples=["team-falcon"],
    )
    amount_cents: int = Field(..., ge=0, description="Amount in minor units")
    currency: str = Field(default="CAD", description="ISO currency code")
    status: str = Field(default="COMPLETED", description="Square payment status")
    email: str | None = Field(default=None, description="Donor email (sensitive)")
    receipt_url: str | None = Field(default=None, description="Square receipt URL (sensitive)")
    created_at: str = Field(..., description="ISO-8601 timestamp")
    raw: dict[str, Any] | None = Field(
        default=None,
        description="Original payment payload, kept outside production only",
    )
    counted_cents: int = Field(
        default=0,
        ge=0,
        description="Cents of this record already reflected in the totals snapshot",
    )
    counted_team_ref: str | None = Field(
        default=None,
        description="Team the counted cents were added to",
    )

    @property
    def countable_cents(self) -> int:
        """Cents this record contributes to its team's total."""
        if not self.team_ref or self.amount_cents <= 0:
            return 0
        return self.amount_cents

    @property
    def is_counted(self) -> bool:
        """Whether the totals snapshot already reflects this record as stored."""
        expected_team = self.team_ref if self.countable_cents else None
        return (
            self.counted_cents == self.countable_cents
            and (self.counted_team_ref if self.counted_cents else None) == expected_team
        )

    def to_json(self) -> bytes:
        """Serialize to the stored blob format."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2).encode("utf-8")
