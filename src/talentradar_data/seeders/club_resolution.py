"""
Current-club heuristic for players discovered through a league listing.

A player listed under a national or continental competition (e.g. an U21
European Championship) plays for a national team there, so their club is
taken from their club-level statistics instead. For domestic competitions
the club they represent in that league wins.

The national-competition check is a plain keyword match on the league name.
Domestic leagues whose names contain one of the tokens (say "American" or
"International") are classified as national competitions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from ..core.http import DailyLimitExceededError
from ..core.models import ClubRecord, LeagueRecord, PlayerRecord, PlayerStatisticRecord
from .reconciler import FREE_AGENT_CLUB

if TYPE_CHECKING:
    from ..core.budget import ApiCallBudget
    from ..providers.api_football import ApiFootballProvider
    from .reconciler import EntityReconciler

logger = logging.getLogger(__name__)

NATIONAL_COMPETITION_KEYWORDS: tuple[str, ...] = (
    "uefa", "fifa", "conmebol", "ofc", "afc", "caf", "world", "nations",
    "euro", "copa", "asia", "africa", "international", "olympics", "olympic",
    "agcff", "aff", "baltic", "concacaf", "cecafa", "asean", "caribbean",
    "cafa", "confederations", "cosafa", "eaff", "cotif", "friendlies", "gulf",
    "waff", "u20 elite league", "atlantic", "sudamericano", "saff",
    "south american", "european", "american", "pacific", "mediterranean",
    "asian", "african", "arabic", "conmenbol", "viareggio", "arab",
)

ADDITIONAL_SEASONS_LIMIT = 3


def is_national_competition(league: Optional[LeagueRecord]) -> bool:
    """Check whether a league name looks like a national-team competition."""
    if league is None or not league.name:
        return False
    name = league.name.lower()
    return any(keyword in name for keyword in NATIONAL_COMPETITION_KEYWORDS)


def is_national_team(club: Optional[ClubRecord]) -> bool:
    if club is None or not club.name:
        return False
    return club.is_national or "national team" in club.name.lower()


def _same_league(a: Optional[LeagueRecord], b: Optional[LeagueRecord]) -> bool:
    if a is None or b is None:
        return False
    if a.external_id is not None and b.external_id is not None:
        return a.external_id == b.external_id
    return bool(a.name and b.name and a.name.strip().lower() == b.name.strip().lower())


def _same_club(a: Optional[ClubRecord], b: Optional[ClubRecord]) -> bool:
    if a is None or b is None:
        return False
    if a.external_id is not None and a.external_id == b.external_id:
        return True
    return bool(a.name and b.name and a.name.strip().lower() == b.name.strip().lower())


def _is_club_level(stat: PlayerStatisticRecord) -> bool:
    return (
        stat.club is not None
        and not is_national_team(stat.club)
        and stat.league is not None
        and not is_national_competition(stat.league)
    )


def _most_recent_first(statistics: Sequence[PlayerStatisticRecord]) -> list[PlayerStatisticRecord]:
    return sorted(statistics, key=lambda s: s.season if s.season is not None else -1, reverse=True)


class ClubResolver:
    """Determines the club a player is attached to when first persisted."""

    def __init__(
        self,
        reconciler: "EntityReconciler",
        provider: "ApiFootballProvider",
        *,
        current_season: int,
        budget: Optional["ApiCallBudget"] = None,
    ):
        self.reconciler = reconciler
        self.provider = provider
        self.current_season = current_season
        self.budget = budget

    def _budget_exhausted(self) -> bool:
        return self.budget is not None and self.budget.exhausted

    async def determine_current_club(
        self,
        player: PlayerRecord,
        context_league: LeagueRecord,
        league_clubs: Sequence[ClubRecord],
    ) -> ClubRecord:
        """
        Pick the persisted club for a player listed under ``context_league``.

        Args:
            player: Player with every loaded season's statistics attached
            context_league: League the player was listed under
            league_clubs: Persisted clubs of that league

        Returns:
            A persisted club, or the "Free Agent" club when none fits

        Raises:
            DailyLimitExceededError: If an API lookup hits the daily quota
        """
        try:
            if is_national_competition(context_league):
                return await self._club_for_national_competition(player)
            return await self._club_for_domestic_league(player, context_league, league_clubs)
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error determining current club for player %s: %s", player.name, e)
            return self.reconciler.sentinel_club(FREE_AGENT_CLUB)

    # ==========================================================================
    # National competitions
    # ==========================================================================

    async def _club_for_national_competition(self, player: PlayerRecord) -> ClubRecord:
        for stat in _most_recent_first(player.statistics):
            if _is_club_level(stat):
                return await self._persisted(stat.club)

        logger.debug(
            "No club-level statistics loaded for player %s, checking additional seasons", player.name
        )
        return await self._club_from_additional_seasons(player)

    async def _club_from_additional_seasons(self, player: PlayerRecord) -> ClubRecord:
        if self._budget_exhausted():
            logger.debug("API budget exhausted, no season lookup for player %s", player.name)
            return self.reconciler.sentinel_club(FREE_AGENT_CLUB)

        seasons = await self.provider.fetch_player_seasons(player.external_id)
        for season in seasons[:ADDITIONAL_SEASONS_LIMIT]:
            if self._budget_exhausted():
                logger.debug("API budget exhausted, stopping season lookup for player %s", player.name)
                break
            statistics = await self.provider.fetch_player_statistics(player.external_id, season)
            for stat in statistics:
                if _is_club_level(stat):
                    club = await self._persisted(stat.club)
                    if club.id is not None:
                        return club

        return self.reconciler.sentinel_club(FREE_AGENT_CLUB)

    # ==========================================================================
    # Domestic leagues
    # ==========================================================================

    async def _club_for_domestic_league(
        self,
        player: PlayerRecord,
        context_league: LeagueRecord,
        league_clubs: Sequence[ClubRecord],
    ) -> ClubRecord:
        history = _most_recent_first(player.statistics)
        in_league = [s for s in history if s.club is not None and _same_league(s.league, context_league)]

        for stat in in_league:
            if stat.season == self.current_season:
                return await self._persisted(stat.club)

        if in_league:
            return await self._persisted(in_league[0].club)

        recent_club = next(
            (s.club for s in history if s.club is not None and not is_national_team(s.club)), None
        )
        for club in league_clubs:
            if _same_club(recent_club, club):
                return club

        if league_clubs:
            logger.debug(
                "Falling back to first club of %s for player %s", context_league.name, player.name
            )
            return league_clubs[0]

        return self.reconciler.sentinel_club(FREE_AGENT_CLUB)

    async def _persisted(self, club: Optional[ClubRecord]) -> ClubRecord:
        return (await self.reconciler.resolve_club(club)).entity
