"""Ranked team totals for the public leaderboard."""

import datetime as dt

from donations.models.totals import Leaderboard, LeaderboardEntry, Team
from donations.services.team_directory import TeamDirectory
from donations.services.totals import TotalsAggregator


def progress_percent(total_cents: int, goal_cents: int | None) -> int:
    """Percent of goal raised, rounded half up; 0 without a goal."""
    if not goal_cents:
        return 0
    return (total_cents * 100 * 2 + goal_cents) // (goal_cents * 2)


class LeaderboardService:
    """Combines the team directory with current totals.

    Every directory team is listed (with a zero total if nothing was raised
    yet), followed by any team that has donations but no directory entry.
    Sorting is stable, so equal totals keep directory order.
    """

    def __init__(self, directory: TeamDirectory, totals: TotalsAggregator) -> None:
        self.directory = directory
        self.totals = totals

    def _entry(self, team_ref: str, total_cents: int, team: Team | None) -> LeaderboardEntry:
        goal_cents = team.goal_cents if team else None
        return LeaderboardEntry(
            rank=1,
            team_ref=team_ref,
            total_cents=total_cents,
            name=team.name if team else None,
            goal_cents=goal_cents,
            progress=progress_percent(total_cents, goal_cents),
        )

    def leaderboard(self) -> Leaderboard:
        totals = self.totals.totals()

        entries = [
            self._entry(team.slug, totals.get(team.slug, 0), team) for team in self.directory.all()
        ]
        entries.extend(
            self._entry(team_ref, cents, None)
            for team_ref, cents in totals.items()
            if team_ref not in self.directory
        )

        ranked = sorted(entries, key=lambda entry: entry.total_cents, reverse=True)
        return Leaderboard(
            leaderboard=[
                entry.model_copy(update={"rank": index})
                for index, entry in enumerate(ranked, start=1)
            ],
            updated_at=dt.datetime.now(dt.UTC),
        )
