"""Team totals, team directory and leaderboard models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Team(BaseModel):
    """Display metadata for a fundraising team."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    slug: str = Field(..., min_length=1, examples=["team-falcon"])
    name: str = Field(..., min_length=1, examples=["Team Falcon"])
    description: str | None = None
    logo_url: str | None = None
    goal_cents: int | None = Field(default=None, ge=0, description="Fundraising goal in cents")


class LeaderboardEntry(BaseModel):
    """One ranked row of the public leaderboard."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rank: int = Field(..., ge=1)
    team_ref: str
    total_cents: int = Field(..., ge=0)
    name: str | None = None
    goal_cents: int | None = None
    progress: int = Field(default=0, ge=0, description="Percent of goal raised")


class Leaderboard(BaseModel):
    """Ranked team totals."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    leaderboard: list[LeaderboardEntry]
    updated_at: datetime


class RebuildReport(BaseModel):
    """Outcome of recomputing the totals snapshot from payment records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_records: int = Field(default=0, ge=0)
    processed: int = Field(default=0, ge=0, description="Records contributing to a team total")
    skipped: int = Field(default=0, ge=0, description="Records without team or positive amount")
    markers_updated: int = Field(default=0, ge=0)
    team_count: int = Field(default=0, ge=0)
    totals: dict[str, int] = Field(default_factory=dict)
    written: bool = Field(default=False, description="Whether the snapshot was overwritten")


class TeamDrift(BaseModel):
    """Mismatch between the served total and a full scan for one team."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    team_ref: str
    served_cents: int
    scanned_cents: int

    @property
    def difference(self) -> int:
        return self.served_cents - self.scanned_cents


class DriftReport(BaseModel):
    """Comparison of served totals against a full recompute."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    in_sync: bool
    teams: list[TeamDrift] = Field(default_factory=list)
