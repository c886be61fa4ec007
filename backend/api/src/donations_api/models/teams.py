"""Team and donation request/response models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from donations.models.totals import Team


class TeamSummary(BaseModel):
    """A team with its current total."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    slug: str
    name: str
    description: str | None = None
    logo_url: str | None = None
    goal_cents: int | None = None
    total_cents: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, description="Percent of goal raised")

    @classmethod
    def from_team(cls, team: Team, total_cents: int, progress: int) -> "TeamSummary":
        return cls(
            slug=team.slug,
            name=team.name,
            description=team.description,
            logo_url=team.logo_url,
            goal_cents=team.goal_cents,
            total_cents=total_cents,
            progress=progress,
        )


class TeamListResponse(BaseModel):
    """All teams in display order."""

    teams: list[TeamSummary]


class DonateRequest(BaseModel):
    """Request to start a donation checkout.

    ``amount`` is in major units (dollars), as typed by the donor.
    """

    amount: Decimal | None = Field(
        default=None,
        description="Donation amount in major units",
        examples=[Decimal("25")],
    )
    currency: str | None = Field(default=None, examples=["CAD"])


class DonateResponse(BaseModel):
    """Hosted checkout URL for the donor."""

    url: str = Field(..., description="Square checkout link")
