"""
U21 player population run.

Walks the configured leagues, lists every U21-eligible player, and persists
each new player with their multi-season statistics, transfers, injuries,
sidelined periods and trophies.

Run flow:
  FETCHING_LEAGUES  - look up and persist the configured leagues
  PROCESSING_LEAGUE - list U21 players, load the league's clubs, process players
  DONE | HALTED_ON_QUOTA | FAILED

Players already in the database are skipped without any API call, so an
interrupted run picks up where it stopped the next time it is triggered.

Usage:
    orchestrator = PopulationOrchestrator(settings, provider, repos, callback=scheduler)
    summary = await orchestrator.run()
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol

from ..core.budget import ApiCallBudget
from ..core.http import DailyLimitExceededError
from ..core.models import ClubRecord, LeagueRecord, PlayerRecord
from .club_resolution import ClubResolver
from .reconciler import EntityReconciler
from .results import PopulationSummary, RecordResult, RunState, StepOutcome

if TYPE_CHECKING:
    from ..core.config import Settings
    from ..providers.api_football import ApiFootballProvider
    from ..repositories.base import RepositorySet

logger = logging.getLogger(__name__)


class PopulationCallback(Protocol):
    """Receives the terminal status of a population run."""

    def on_population_complete(self, success: bool, message: str) -> Any: ...


class PopulationOrchestrator:
    """
    Sequential league and player loop for one population run.

    The call budget is reset on every run and attached to the provider's
    HTTP client, so every request actually sent is counted. New leagues are
    not started past 95% of the budget, new players not past 100%.
    """

    def __init__(
        self,
        settings: "Settings",
        provider: "ApiFootballProvider",
        repos: "RepositorySet",
        *,
        budget: Optional[ApiCallBudget] = None,
        callback: Optional[PopulationCallback] = None,
        reconciler: Optional[EntityReconciler] = None,
        club_resolver: Optional[ClubResolver] = None,
        today: Optional[date] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Pipeline settings (leagues, season, budget ceiling)
            provider: API-Football provider
            repos: Repository set to persist into
            budget: Call budget, defaults to one sized from ``max_api_calls``
            callback: Notified once with the terminal status of each run
            reconciler: Entity reconciler, built from repos and provider if omitted
            club_resolver: Current-club heuristic, built if omitted
            today: Fixed reference date for the U21 check (defaults to today)
        """
        self.settings = settings
        self.provider = provider
        self.repos = repos
        self.budget = budget or ApiCallBudget(settings.max_api_calls)
        self.callback = callback
        self.reconciler = reconciler or EntityReconciler(
            repos, provider, current_season=settings.current_season, budget=self.budget
        )
        self.club_resolver = club_resolver or ClubResolver(
            self.reconciler, provider, current_season=settings.current_season, budget=self.budget
        )
        self._today = today
        self.state = RunState.IDLE

    @property
    def today(self) -> date:
        return self._today or date.today()

    # ==========================================================================
    # Run
    # ==========================================================================

    async def run(self) -> PopulationSummary:
        """
        Execute one population run.

        Never raises: the outcome is reported through the returned summary
        and, exactly once, through the completion callback.
        """
        self.budget.reset()
        self.provider.http.attach_budget(self.budget)
        summary = PopulationSummary(max_api_calls=self.budget.max_calls)

        logger.info(
            "Starting U21 player population (season %s, leagues %s, budget %d calls)",
            self.settings.current_season,
            self.settings.population_league_ids,
            self.budget.max_calls,
        )

        try:
            await self._run(summary)
        except Exception as e:
            logger.exception("Population run failed: %s", e)
            self.state = RunState.FAILED
            summary.errors.append(f"Run error: {e}")
            summary.message = f"Population failed: {e}"

        summary.state = self.state
        summary.success = self.state is RunState.DONE
        summary.api_calls = self.budget.calls
        summary.run_completed = datetime.now()

        logger.info(
            "Population run finished (%s): %d players processed, %d skipped, %d failed, %s API calls",
            summary.state.value,
            summary.players_processed,
            summary.players_skipped,
            summary.players_failed,
            self.budget,
        )

        self._notify(summary)
        return summary

    async def _run(self, summary: PopulationSummary) -> None:
        self.state = RunState.FETCHING_LEAGUES
        outcome, leagues = await self._fetch_leagues(summary)

        if outcome is StepOutcome.HALT_RUN:
            self._halt_on_quota(summary, "while fetching leagues")
            return
        if not leagues:
            self.state = RunState.FAILED
            summary.message = "Population failed: none of the configured leagues could be fetched"
            logger.error(summary.message)
            return

        for league in leagues:
            if self.budget.near_limit:
                logger.warning(
                    "API budget at %s, not starting league %s", self.budget, league.name
                )
                summary.budget_exhausted = True
                break

            self.state = RunState.PROCESSING_LEAGUE
            outcome = await self._process_league(league, summary)
            if outcome is StepOutcome.HALT_RUN:
                self._halt_on_quota(summary, f"while processing league {league.name}")
                return

        self.state = RunState.DONE
        if summary.budget_exhausted:
            summary.message = (
                f"Population partially completed: API budget reached ({self.budget} calls), "
                f"{summary.players_processed} players saved"
            )
        else:
            summary.message = (
                f"Population completed successfully: {summary.players_processed} players saved "
                f"across {summary.leagues_processed} leagues"
            )

    def _halt_on_quota(self, summary: PopulationSummary, where: str) -> None:
        self.state = RunState.HALTED_ON_QUOTA
        summary.message = f"Population halted: daily API limit reached {where}"
        logger.warning("=" * 70)
        logger.warning("DAILY API LIMIT REACHED - stopping population run")
        logger.warning("Halted %s after %s API calls", where, self.budget)
        logger.warning("Players saved so far: %d", summary.players_processed)
        logger.warning("Re-run after the quota resets; saved players will be skipped")
        logger.warning("=" * 70)

    def _notify(self, summary: PopulationSummary) -> None:
        if self.callback is None:
            return
        try:
            self.callback.on_population_complete(summary.success, summary.message)
        except Exception as e:
            logger.error("Population completion callback failed: %s", e)

    # ==========================================================================
    # Leagues
    # ==========================================================================

    async def _fetch_leagues(self, summary: PopulationSummary) -> tuple[StepOutcome, list[LeagueRecord]]:
        leagues: list[LeagueRecord] = []
        try:
            for league_id in self.settings.population_league_ids:
                fetched = await self.provider.fetch_league(league_id)
                if fetched is None:
                    logger.warning("League %s not found, skipping", league_id)
                    summary.errors.append(f"League {league_id}: not found")
                    continue
                league = await self.reconciler.save_league(fetched)
                logger.info("Fetched league %s (id=%s)", league.name, league.external_id)
                leagues.append(league)
        except DailyLimitExceededError:
            return StepOutcome.HALT_RUN, leagues
        return StepOutcome.CONTINUE, leagues

    async def _process_league(self, league: LeagueRecord, summary: PopulationSummary) -> StepOutcome:
        """List and process the U21 players of one league."""
        try:
            logger.info("Processing league: %s", league.name)
            player_ids = await self._list_u21_players(league)
            if not player_ids:
                logger.warning("No U21 players found in league %s", league.name)
                summary.leagues_processed += 1
                return StepOutcome.CONTINUE

            league_clubs = await self._league_clubs(league)

            for index, player_id in enumerate(player_ids, start=1):
                if self.budget.exhausted:
                    logger.warning(
                        "API budget exhausted (%s), stopping league %s after %d of %d players",
                        self.budget,
                        league.name,
                        index - 1,
                        len(player_ids),
                    )
                    summary.budget_exhausted = True
                    break

                outcome = await self._process_player(player_id, league, league_clubs, summary)
                if outcome is StepOutcome.HALT_RUN:
                    return outcome

                if index % 50 == 0:
                    logger.info(
                        "League %s: %d/%d players handled (%s API calls)",
                        league.name,
                        index,
                        len(player_ids),
                        self.budget,
                    )

            summary.leagues_processed += 1
            return StepOutcome.CONTINUE
        except DailyLimitExceededError:
            return StepOutcome.HALT_RUN
        except Exception as e:
            logger.exception("Error processing league %s: %s", league.name, e)
            summary.errors.append(f"League {league.name}: {e}")
            return StepOutcome.SOFT_FAIL

    async def _list_u21_players(self, league: LeagueRecord) -> list[int]:
        season = self.settings.current_season
        kwargs = {"max_age": self.settings.u21_max_age, "today": self.today}

        player_ids = await self.provider.fetch_player_ids(league.external_id, season, **kwargs)
        if not player_ids:
            logger.info(
                "No U21 players for %s in season %s, trying season %s", league.name, season, season - 1
            )
            player_ids = await self.provider.fetch_player_ids(league.external_id, season - 1, **kwargs)
        return player_ids

    async def _league_clubs(self, league: LeagueRecord) -> list[ClubRecord]:
        """Persisted clubs of the league, fetched and tagged when there are none yet."""
        clubs = self.repos.clubs.find_by_league(league.id)
        if clubs:
            return clubs

        teams = await self.provider.fetch_teams(league.external_id, self.settings.current_season)
        for team in teams:
            club = (
                await self.reconciler.resolve_club(team.model_copy(update={"league_id": league.id}), fetch=False)
            ).entity
            if club.league_id is None:
                club = self.repos.clubs.save(club.model_copy(update={"league_id": league.id}))
            clubs.append(club)

        logger.info("Loaded %d clubs for league %s", len(clubs), league.name)
        return clubs

    # ==========================================================================
    # Players
    # ==========================================================================

    async def _process_player(
        self,
        player_id: int,
        league: LeagueRecord,
        league_clubs: list[ClubRecord],
        summary: PopulationSummary,
    ) -> StepOutcome:
        try:
            if self.repos.players.exists_by_external_id(player_id):
                logger.debug("Player %s already exists, skipping", player_id)
                summary.players_skipped += 1
                return StepOutcome.CONTINUE

            player, seasons = await self._fetch_comprehensive(player_id)
            if player is None:
                logger.warning("No details found for player %s", player_id)
                summary.players_failed += 1
                summary.errors.append(f"Player {player_id}: no details found")
                return StepOutcome.SOFT_FAIL

            if not player.is_u21_eligible(self.today, self.settings.u21_max_age):
                logger.debug("Player %s is not U21 eligible, skipping", player.name)
                summary.players_skipped += 1
                return StepOutcome.CONTINUE

            current_club = await self.club_resolver.determine_current_club(player, league, league_clubs)
            saved = self.repos.players.save_and_flush(player.model_copy(update={"current_club": current_club}))

            await self._save_player_data(saved, player, seasons, league, summary)

            summary.players_processed += 1
            logger.info(
                "Saved player %s (%s) at %s",
                saved.name,
                saved.external_id,
                current_club.name,
            )
            return StepOutcome.CONTINUE
        except DailyLimitExceededError:
            return StepOutcome.HALT_RUN
        except Exception as e:
            logger.exception("Error processing player %s: %s", player_id, e)
            summary.players_failed += 1
            summary.errors.append(f"Player {player_id}: {e}")
            return StepOutcome.SOFT_FAIL

    async def _fetch_comprehensive(self, player_id: int) -> tuple[Optional[PlayerRecord], list[int]]:
        """
        Load a player's profile and statistics across all their seasons.

        The profile comes from the most recent season that returns data;
        every later season only contributes statistics.

        Returns:
            (player with every loaded statistic attached, seasons walked)
        """
        seasons = await self.provider.fetch_player_seasons(player_id)
        if not seasons:
            seasons = list(self.settings.fallback_seasons)
            logger.debug("No seasons listed for player %s, using %s", player_id, seasons)

        player: Optional[PlayerRecord] = None
        statistics = []
        for season in seasons:
            if self.budget.exhausted:
                logger.debug("Budget exhausted, stopping season scan for player %s", player_id)
                break
            if player is None:
                player = await self.provider.fetch_player_details(player_id, season)
                if player is not None:
                    statistics.extend(player.statistics)
            else:
                statistics.extend(await self.provider.fetch_player_statistics(player_id, season))

        if player is None:
            return None, seasons
        return player.model_copy(update={"statistics": statistics}), seasons

    async def _save_player_data(
        self,
        saved: PlayerRecord,
        loaded: PlayerRecord,
        seasons: list[int],
        league: LeagueRecord,
        summary: PopulationSummary,
    ) -> None:
        """Persist every player-owned record; each step fails on its own."""
        current_club = saved.current_club

        async def transfers() -> list[RecordResult]:
            return [
                await self.reconciler.save_transfer(saved, t)
                for t in await self.provider.fetch_transfers(saved.external_id)
            ]

        async def injuries() -> list[RecordResult]:
            results = []
            for season in seasons:
                if self.budget.exhausted:
                    break
                for injury in await self.provider.fetch_injuries(saved.external_id, season):
                    results.append(await self.reconciler.save_injury(saved, injury, current_club, league))
            return results

        async def sidelined() -> list[RecordResult]:
            return [
                self.reconciler.save_sidelined(saved, s)
                for s in await self.provider.fetch_sidelined(saved.external_id)
            ]

        async def trophies() -> list[RecordResult]:
            return [
                self.reconciler.save_trophy(saved, t)
                for t in await self.provider.fetch_trophies(saved.external_id)
            ]

        async def statistics() -> list[RecordResult]:
            return [
                await self.reconciler.upsert_statistic(saved, stat, current_club)
                for stat in loaded.statistics
            ]

        await self._sub_step("transfer", saved, transfers, summary)
        await self._sub_step("injury", saved, injuries, summary)
        await self._sub_step("sidelined", saved, sidelined, summary)
        await self._sub_step("trophy", saved, trophies, summary)
        await self._sub_step("statistic", saved, statistics, summary, needs_api=False)

    async def _sub_step(
        self,
        kind: str,
        player: PlayerRecord,
        step: Callable[[], Awaitable[list[RecordResult]]],
        summary: PopulationSummary,
        *,
        needs_api: bool = True,
    ) -> None:
        if needs_api and self.budget.exhausted:
            logger.debug("Budget exhausted, skipping %s data for player %s", kind, player.name)
            return
        try:
            summary.extend(await step())
        except DailyLimitExceededError:
            raise
        except Exception as e:
            logger.error("Error saving %s data for player %s: %s", kind, player.name, e)
            summary.add(RecordResult.failed(kind, f"player={player.external_id}", str(e)))
