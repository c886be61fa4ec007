"""Read-only directory of fundraising teams.

The campaign teams are built in; ``TEAMS_FILE`` may point at a JSON list of
team objects (camelCase or snake_case keys) that replaces them.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from donations.config import get_settings
from donations.models.totals import Team
from donations.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TEAMS: tuple[Team, ...] = (
    Team(
        slug="team-falcon",
        name="Team Falcon",
        description="Supporting urgent relief and sustainable community programs across Palestine.",
        logo_url="/logos/falcon.svg",
        goal_cents=5_000_000,
    ),
    Team(
        slug="team-phoenix",
        name="Team Phoenix",
        description="Rallying global allies to fund medical aid and trauma counseling for families.",
        logo_url="/logos/phoenix.svg",
        goal_cents=6_500_000,
    ),
    Team(
        slug="team-lion",
        name="Team Lion",
        description="Investing in youth empowerment, education, and rebuilding initiatives in Gaza.",
        logo_url="/logos/lion.svg",
        goal_cents=8_000_000,
    ),
)

_team_list_adapter = TypeAdapter(list[Team])


class TeamDirectory:
    """Slug to team metadata lookup, in display order."""

    def __init__(self, teams: list[Team] | tuple[Team, ...] = DEFAULT_TEAMS) -> None:
        self._teams = list(teams)
        self._by_slug = {team.slug: team for team in self._teams}
        if len(self._by_slug) != len(self._teams):
            raise ValueError("Duplicate team slug in directory")

    def all(self) -> list[Team]:
        return list(self._teams)

    def get(self, slug: str) -> Team | None:
        return self._by_slug.get(slug)

    def __contains__(self, slug: object) -> bool:
        return slug in self._by_slug

    @classmethod
    def from_data(cls, data: Any) -> "TeamDirectory":
        """Build a directory from decoded JSON (a list of team objects).

        Raises:
            ValueError: If the data is not a valid team list.
        """
        try:
            teams = _team_list_adapter.validate_python(data)
        except ValidationError as e:
            raise ValueError(f"Invalid team list: {e}") from e
        return cls(teams)

    @classmethod
    def from_json_file(cls, path: Path | str) -> "TeamDirectory":
        """Load a directory from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the file is not a valid team list.
        """
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        directory = cls.from_data(data)
        logger.info("Loaded %d teams from %s", len(directory.all()), path)
        return directory


@lru_cache(maxsize=1)
def get_team_directory() -> TeamDirectory:
    """Get the shared TeamDirectory (singleton pattern)."""
    teams_file = get_settings().teams_file
    if teams_file:
        return TeamDirectory.from_json_file(teams_file)
    return TeamDirectory()
