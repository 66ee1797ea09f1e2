"""
Entity reconciliation.

Maps freshly parsed records onto persisted rows: find by API-Football id,
fall back to a case-insensitive name match, create when absent. Clubs that
cannot be identified at all resolve to a sentinel club so that no foreign
reference is ever left dangling.

Usage:
    reconciler = EntityReconciler(repos, provider, current_season=2025, budget=budget)
    resolution = await reconciler.resolve_club(stat.club, fallback=player.current_club)
    club = resolution.entity
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..core.http import DailyLimitExceededError
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
)
from .results import RecordResult
from .utils import DataParsers

if TYPE_CHECKING:
    from ..core.budget import ApiCallBudget
    from ..providers.api_football import ApiFootballProvider
    from ..repositories.base import RepositorySet

logger = logging.getLogger(__name__)

FREE_AGENT_CLUB = "Free Agent"
ERROR_FALLBACK_CLUB = "Error Fallback Club"
DEFAULT_LEAGUE_TYPE = "League"


class ResolutionStrategy(str, Enum):
    """How a club reference was resolved, in priority order."""
    BY_EXTERNAL_ID = "by_external_id"
    BY_NAME = "by_name"
    BY_FALLBACK = "by_fallback"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class Resolution:
    entity: ClubRecord
    strategy: ResolutionStrategy


ClubResolver = Callable[[Optional[ClubRecord], Optional[ClubRecord], bool], Awaitable[Optional[ClubRecord]]]


class EntityReconciler:
    """
    Idempotent persistence of parsed API-Football records.

    API lookups made while resolving references go through the shared
    provider (and therefore count toward the run's budget); once the budget
    is exhausted, references are persisted from the data at hand instead.
    """

    def __init__(
        self,
        repos: "RepositorySet",
        provider: "ApiFootballProvider",
        *,
        current_season: int,
        budget: Optional["ApiCallBudget"] = None,
    ):
        self.repos = repos
        self.provider = provider
        self.current_season = current_season
        self.budget = budget

        self._club_strategies: tuple[tuple[ResolutionStrategy, ClubResolver], ...] = (
            (ResolutionStrategy.BY_EXTERNAL_ID, self._club_by_external_id),
            (ResolutionStrategy.BY_NAME, self._club_by_name),
            (ResolutionStrategy.BY_FALLBACK, self._club_by_fallback),
        )

    def _can_fetch(self, fetch: bool) -> bool:
        return fetch and (self.budget is None or not self.budget.exhausted)

    # ==========================================================================
    # Countries
    # ==========================================================================

    async def resolve_country(
        self,
        country: Optional[CountryRecord],
        *,
        fetch: bool = True,
    ) -> Optional[CountryRecord]:
        """
        Find or create a country by name.

        Unknown countries are looked up through ``/countries?name=`` for
        their code and flag, falling back to the data provided.
        """
        if country is None or not country.name or not country.name.strip():
            return None
        if country.id is not None:
            return country

        name = country.name.strip()
        try:
            existing = self.repos.countries.find_by_name_ignore_case(name)
            if existing is not None:
                return existing

            source = country
            if self._can_fetch(fetch):
                fetched = await self.provider.fetch_country(name)
                if fetched is not None:
                    source = fetched
                else:
                    logger.debug("No API details for country %s, using provided data", name)

            return self.repos.countries.save(
                CountryRecord(
                    name=name,
                    code=DataParsers.truncate_country_code(
                        source.code.strip() if source.code else None, name
                    ),
                    flag_url=source.flag_url.strip() if source.flag_url else None,
                )
            )
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error saving country %s: %s", name, e)
            return None

    # ==========================================================================
    # Clubs
    # ==========================================================================

    async def resolve_club(
        self,
        candidate: Optional[ClubRecord],
        fallback: Optional[ClubRecord] = None,
        *,
        fetch: bool = True,
    ) -> Resolution:
        """
        Resolve a club reference to a persisted club.

        Strategies are tried in order: API-Football id (persisted row, else
        fetched details, else the candidate itself), trimmed name, the
        fallback club, then the "Free Agent" sentinel. An unexpected error
        yields the "Error Fallback Club" sentinel.

        Args:
            candidate: Club as parsed from the API, may be None
            fallback: Club to use when the candidate cannot be identified
            fetch: Whether unknown ids may be looked up through the API

        Raises:
            DailyLimitExceededError: If an API lookup hits the daily quota
        """
        try:
            for strategy, resolver in self._club_strategies:
                club = await resolver(candidate, fallback, fetch)
                if club is not None:
                    return Resolution(club, strategy)
            return Resolution(self.sentinel_club(FREE_AGENT_CLUB), ResolutionStrategy.SENTINEL)
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error processing club %s: %s", candidate.name if candidate else None, e)
            return Resolution(self.sentinel_club(ERROR_FALLBACK_CLUB), ResolutionStrategy.SENTINEL)

    async def _club_by_external_id(
        self,
        candidate: Optional[ClubRecord],
        fallback: Optional[ClubRecord],
        fetch: bool,
    ) -> Optional[ClubRecord]:
        if candidate is None or candidate.external_id is None:
            return None

        existing = self.repos.clubs.find_by_external_id(candidate.external_id)
        if existing is not None:
            return existing

        source = candidate
        if self._can_fetch(fetch):
            fetched = await self.provider.fetch_club(candidate.external_id)
            if fetched is not None:
                source = fetched.model_copy(update={"league_id": candidate.league_id})

        return await self._persist_club(source, fetch=fetch)

    async def _club_by_name(
        self,
        candidate: Optional[ClubRecord],
        fallback: Optional[ClubRecord],
        fetch: bool,
    ) -> Optional[ClubRecord]:
        if candidate is None or not candidate.name or not candidate.name.strip():
            return None

        existing = self.repos.clubs.find_by_name_ignore_case(candidate.name.strip())
        if existing is not None:
            return existing

        return await self._persist_club(candidate, fetch=fetch)

    async def _club_by_fallback(
        self,
        candidate: Optional[ClubRecord],
        fallback: Optional[ClubRecord],
        fetch: bool,
    ) -> Optional[ClubRecord]:
        if fallback is None:
            return None
        if fallback.id is not None:
            return fallback

        club = await self._club_by_external_id(fallback, None, fetch)
        if club is None:
            club = await self._club_by_name(fallback, None, fetch)
        return club

    async def _persist_club(self, club: ClubRecord, *, fetch: bool) -> ClubRecord:
        country = await self.resolve_country(club.country, fetch=fetch)
        name = club.name.strip() if club.name else club.name
        return self.repos.clubs.save_and_flush(
            club.model_copy(update={"id": None, "name": name, "country": country})
        )

    def sentinel_club(self, name: str = FREE_AGENT_CLUB) -> ClubRecord:
        """Find or create a synthetic club by name."""
        existing = self.repos.clubs.find_by_name_ignore_case(name)
        if existing is not None:
            return existing
        logger.debug("Creating sentinel club '%s'", name)
        return self.repos.clubs.save_and_flush(ClubRecord(name=name, is_active=True, is_national=False))

    # ==========================================================================
    # Leagues
    # ==========================================================================

    async def save_league(self, league: LeagueRecord) -> LeagueRecord:
        """
        Persist a configured league, keyed by API-Football id.

        New leagues are stamped with the current season.
        """
        if league.external_id is not None:
            existing = self.repos.leagues.find_by_external_id(league.external_id)
            if existing is not None:
                return existing

        country = await self.resolve_country(league.country)
        return self.repos.leagues.save(
            league.model_copy(update={"id": None, "country": country, "season": self.current_season})
        )

    async def resolve_league(
        self,
        candidate: Optional[LeagueRecord],
        season: Optional[int] = None,
        fallback: Optional[LeagueRecord] = None,
        *,
        fetch: bool = True,
    ) -> Optional[LeagueRecord]:
        """
        Resolve a league reference to a persisted league.

        Order: persisted row with the same API-Football id, fetched league
        details, a persisted league whose name contains the candidate's name
        (same season preferred), a new league of type "League". With
        ``fetch=False`` an unknown id is persisted from the candidate.

        Returns:
            The persisted league, ``fallback`` when there is no candidate,
            or None when the league cannot be resolved
        """
        if candidate is None:
            return fallback if fallback is not None and fallback.id is not None else None

        season = season if season is not None else (candidate.season or self.current_season)

        try:
            if candidate.external_id is not None:
                existing = self.repos.leagues.find_by_external_id(candidate.external_id)
                if existing is not None:
                    return existing

                if not fetch:
                    country = await self.resolve_country(candidate.country, fetch=False)
                    return self.repos.leagues.save(
                        candidate.model_copy(update={"id": None, "country": country, "season": season})
                    )

                if self._can_fetch(fetch):
                    fetched = await self.provider.fetch_league(candidate.external_id)
                    if fetched is not None:
                        country = await self.resolve_country(fetched.country)
                        return self.repos.leagues.save_and_flush(
                            fetched.model_copy(
                                update={"country": country, "season": fetched.season or season}
                            )
                        )

            if candidate.name and candidate.name.strip():
                name = candidate.name.strip()
                matches = self.repos.leagues.find_by_name_containing(name)
                for league in matches:
                    if league.season == season:
                        return league
                if matches:
                    return matches[0]

                country = await self.resolve_country(candidate.country, fetch=fetch)
                return self.repos.leagues.save_and_flush(
                    LeagueRecord(
                        external_id=candidate.external_id,
                        name=name,
                        type=DEFAULT_LEAGUE_TYPE,
                        season=season,
                        country=country,
                        logo_url=candidate.logo_url,
                    )
                )

            return None
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error processing league %s: %s", candidate.name, e)
            return None

    # ==========================================================================
    # Player-owned records
    # ==========================================================================

    async def upsert_statistic(
        self,
        player: PlayerRecord,
        stat: PlayerStatisticRecord,
        fallback_club: Optional[ClubRecord] = None,
    ) -> RecordResult:
        """
        Insert or overwrite the statistic row keyed on (player, club, league, season).

        Raises:
            DailyLimitExceededError: If resolving the club or league hits the daily quota
        """
        key = f"player={player.external_id} season={stat.season}"
        try:
            club = (await self.resolve_club(stat.club, fallback_club)).entity
            league = await self.resolve_league(stat.league, stat.season)
            if league is None:
                return RecordResult.failed("statistic", key, "league could not be resolved")

            key = f"{key} club={club.id} league={league.id}"
            existing = self.repos.statistics.find_by_key(player.id, club.id, league.id, stat.season)
            if existing is not None:
                self.repos.statistics.save(existing.model_copy(update=stat.scalar_values()))
            else:
                self.repos.statistics.save(
                    stat.model_copy(
                        update={"id": None, "player_id": player.id, "club": club, "league": league}
                    )
                )
            return RecordResult("statistic", key)
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error saving statistics for player %s (season %s): %s", player.name, stat.season, e)
            return RecordResult.failed("statistic", key, str(e))

    async def save_transfer(self, player: PlayerRecord, transfer: PlayerTransferRecord) -> RecordResult:
        """
        Persist a transfer unless an identical one is already stored.

        The destination club falls back to the player's current club; the
        origin club has no fallback.
        """
        key = f"player={player.external_id} date={transfer.transfer_date}"
        try:
            club_from = None
            if transfer.club_from is not None:
                club_from = (await self.resolve_club(transfer.club_from)).entity

            club_to = None
            if transfer.club_to is not None:
                club_to = (await self.resolve_club(transfer.club_to, player.current_club)).entity

            club_from_id = club_from.id if club_from else None
            club_to_id = club_to.id if club_to else None
            key = f"{key} from={club_from_id} to={club_to_id}"

            if transfer.transfer_date is not None and self.repos.transfers.exists(
                player.id, transfer.transfer_date, club_from_id, club_to_id
            ):
                return RecordResult.unchanged("transfer", key, "duplicate")

            self.repos.transfers.save(
                transfer.model_copy(
                    update={"id": None, "player_id": player.id, "club_from": club_from, "club_to": club_to}
                )
            )
            return RecordResult("transfer", key)
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error saving transfer for player %s: %s", player.name, e)
            return RecordResult.failed("transfer", key, str(e))

    async def save_injury(
        self,
        player: PlayerRecord,
        injury: PlayerInjuryRecord,
        fallback_club: Optional[ClubRecord] = None,
        fallback_league: Optional[LeagueRecord] = None,
    ) -> RecordResult:
        """Append an injury; unknown clubs and leagues are stored without an API lookup."""
        key = f"player={player.external_id} fixture={injury.fixture_id}"
        try:
            club = fallback_club
            if injury.club is not None:
                club = (await self.resolve_club(injury.club, fallback_club, fetch=False)).entity
            league = await self.resolve_league(injury.league, fallback=fallback_league, fetch=False)

            self.repos.history.save_injury(
                injury.model_copy(update={"id": None, "player_id": player.id, "club": club, "league": league})
            )
            return RecordResult("injury", key)
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error saving injury for player %s: %s", player.name, e)
            return RecordResult.failed("injury", key, str(e))

    def save_sidelined(self, player: PlayerRecord, sidelined: PlayerSidelinedRecord) -> RecordResult:
        key = f"player={player.external_id} start={sidelined.start_date}"
        try:
            self.repos.history.save_sidelined(
                sidelined.model_copy(update={"id": None, "player_id": player.id})
            )
            return RecordResult("sidelined", key)
        except Exception as e:
            logger.error("Error saving sidelined period for player %s: %s", player.name, e)
            return RecordResult.failed("sidelined", key, str(e))

    def save_trophy(self, player: PlayerRecord, trophy: PlayerTrophyRecord) -> RecordResult:
        key = f"player={player.external_id} trophy={trophy.league_name} {trophy.season}"
        try:
            self.repos.history.save_trophy(trophy.model_copy(update={"id": None, "player_id": player.id}))
            return RecordResult("trophy", key)
        except Exception as e:
            logger.error("Error saving trophy for player %s: %s", player.name, e)
            return RecordResult.failed("trophy", key, str(e))
