"""
API-Football data provider.

One method per endpoint the population pipeline consumes. Each method
returns parsed records and degrades to an empty result (or None) when the
call yields no data, so callers can carry on with the next unit of work.
DailyLimitExceededError is always re-raised.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Optional, TypeVar

from ..core.http import ApiFootballHttpClient, DailyLimitExceededError
from ..core.models import (
    ClubRecord,
    CountryRecord,
    LeagueRecord,
    PlayerInjuryRecord,
    PlayerRecord,
    PlayerSidelinedRecord,
    PlayerStatisticRecord,
    PlayerTransferRecord,
    PlayerTrophyRecord,
    age_on,
)
from ..seeders.utils import DataParsers
from . import parsers

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiFootballProvider:
    """
    Typed facade over ApiFootballHttpClient.

    Every request goes through the shared client, so spacing, retries and
    call accounting apply uniformly.
    """

    provider_name = "api_football"

    def __init__(self, http: ApiFootballHttpClient, *, page_delay: float = 0.5):
        self.http = http
        self.page_delay = page_delay

    # ==========================================================================
    # Request Helpers
    # ==========================================================================

    async def _rows(self, endpoint: str, params: dict[str, Any], what: str) -> list[Any]:
        """GET ``endpoint`` and return its ``response`` array ([] on no data)."""
        try:
            payload = await self.http.get(endpoint, params)
        except DailyLimitExceededError as e:
            logger.warning("Daily API limit reached while retrieving %s: %s", what, e)
            raise
        except Exception as e:
            logger.error("Error retrieving %s: %s", what, e)
            return []

        if payload is None:
            return []
        rows = payload.get("response")
        return rows if isinstance(rows, list) else []

    @staticmethod
    def _parse_all(rows: list[Any], parser: Callable[..., Optional[T]], *args: Any) -> list[T]:
        results = []
        for row in rows:
            try:
                record = parser(row, *args)
            except Exception as e:
                logger.error("Error parsing %s row: %s", parser.__name__, e)
                continue
            if record is not None:
                results.append(record)
        return results

    # ==========================================================================
    # Leagues, Teams, Countries
    # ==========================================================================

    async def fetch_league(self, league_id: int) -> Optional[LeagueRecord]:
        """Fetch one league by its API-Football id."""
        rows = await self._rows("/leagues", {"id": league_id}, f"league {league_id}")
        leagues = self._parse_all(rows[:1], parsers.parse_league)
        if not leagues:
            logger.debug("No league found with ID: %s", league_id)
            return None
        return leagues[0]

    async def fetch_teams(self, league_id: int, season: int) -> list[ClubRecord]:
        """Fetch every team playing in a league season."""
        rows = await self._rows(
            "/teams",
            {"league": league_id, "season": season},
            f"teams from league {league_id} for season {season}",
        )
        return self._parse_all(rows, parsers.parse_team)

    async def fetch_club(self, club_id: int) -> Optional[ClubRecord]:
        """Fetch one club (with venue details) by its API-Football id."""
        rows = await self._rows("/teams", {"id": club_id}, f"club {club_id}")
        clubs = self._parse_all(rows[:1], parsers.parse_team)
        if not clubs:
            logger.debug("No club found with ID: %s", club_id)
            return None
        return clubs[0]

    async def fetch_country(self, name: str) -> Optional[CountryRecord]:
        """Look a country up by name."""
        if not name or not name.strip():
            return None
        rows = await self._rows("/countries", {"name": name.strip()}, f"country '{name}'")
        countries = self._parse_all(rows[:1], parsers.parse_country)
        if not countries:
            logger.debug("No country found with name: %s", name)
            return None
        return countries[0]

    # ==========================================================================
    # Players
    # ==========================================================================

    async def fetch_player_ids(
        self,
        league_id: int,
        season: int,
        *,
        max_age: int = 21,
        today: Optional[date] = None,
    ) -> list[int]:
        """
        List the ids of U21-eligible players in a league season.

        Walks every page reported by ``paging.total`` with ``page_delay``
        between pages. Rows without a parsable birth date are skipped.

        Args:
            league_id: API-Football league id
            season: Season year
            max_age: Oldest age (in whole years) still eligible
            today: Reference date for the age check (defaults to today)

        Returns:
            Player ids in listing order, without duplicates
        """
        today = today or date.today()
        player_ids: list[int] = []
        seen: set[int] = set()
        current_page = 1
        total_pages = 1

        while current_page <= total_pages:
            try:
                payload = await self.http.get(
                    "/players",
                    {"league": league_id, "season": season, "page": current_page},
                )
            except DailyLimitExceededError:
                logger.warning(
                    "Daily API limit reached while retrieving player IDs from league %s for season %s",
                    league_id,
                    season,
                )
                raise

            if payload is not None:
                if current_page == 1:
                    paging = payload.get("paging") or {}
                    total_pages = DataParsers.safe_int(paging.get("total"), 1) or 1

                for row in payload.get("response") or []:
                    player_id, birth_date = parsers.parse_player_listing(row)
                    if player_id is None or player_id in seen:
                        continue
                    dob = DataParsers.parse_date(birth_date)
                    if dob is None:
                        continue
                    if age_on(dob, today) <= max_age:
                        player_ids.append(player_id)
                        seen.add(player_id)

            current_page += 1
            if current_page <= total_pages:
                await self.http.pause(self.page_delay)

        logger.info(
            "Found %d U21 players in league %s for season %s (%d pages)",
            len(player_ids),
            league_id,
            season,
            total_pages,
        )
        return player_ids

    async def fetch_player_seasons(self, player_id: int) -> list[int]:
        """Seasons the player has statistics for, most recent first."""
        rows = await self._rows(
            "/players/seasons", {"player": player_id}, f"seasons for player {player_id}"
        )
        seasons = {DataParsers.safe_int(row) for row in rows}
        seasons.discard(None)
        return sorted(seasons, reverse=True)

    async def fetch_player_details(self, player_id: int, season: int) -> Optional[PlayerRecord]:
        """Player profile plus that season's statistics blocks."""
        rows = await self._rows(
            "/players",
            {"id": player_id, "season": season},
            f"player details for player {player_id} in season {season}",
        )
        players = self._parse_all(rows[:1], parsers.parse_player, season)
        return players[0] if players else None

    async def fetch_player_statistics(self, player_id: int, season: int) -> list[PlayerStatisticRecord]:
        """Every statistics block (one per club and league) for a season."""
        rows = await self._rows(
            "/players",
            {"id": player_id, "season": season},
            f"statistics for player {player_id} in season {season}",
        )
        if not rows or not isinstance(rows[0], dict):
            return []
        return self._parse_all(
            rows[0].get("statistics") or [], parsers.parse_player_statistics, season
        )

    # ==========================================================================
    # Player History
    # ==========================================================================

    async def fetch_transfers(self, player_id: int) -> list[PlayerTransferRecord]:
        rows = await self._rows("/transfers", {"player": player_id}, f"transfers for player {player_id}")
        transfers: list[PlayerTransferRecord] = []
        for row in rows:
            if isinstance(row, dict):
                transfers.extend(self._parse_all(row.get("transfers") or [], parsers.parse_transfer))
        return transfers

    async def fetch_injuries(self, player_id: int, season: int) -> list[PlayerInjuryRecord]:
        rows = await self._rows(
            "/injuries",
            {"player": player_id, "season": season},
            f"injuries for player {player_id} in season {season}",
        )
        return self._parse_all(rows, parsers.parse_injury)

    async def fetch_sidelined(self, player_id: int) -> list[PlayerSidelinedRecord]:
        """Sidelined periods; the endpoint only accepts the player filter."""
        rows = await self._rows(
            "/sidelined", {"player": player_id}, f"sidelined periods for player {player_id}"
        )
        return self._parse_all(rows, parsers.parse_sidelined)

    async def fetch_trophies(self, player_id: int) -> list[PlayerTrophyRecord]:
        rows = await self._rows("/trophies", {"player": player_id}, f"trophies for player {player_id}")
        return self._parse_all(rows, parsers.parse_trophy)
