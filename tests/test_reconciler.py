"""
Tests for entity reconciliation: club resolution strategies, league and
country resolution, statistic upserts, transfer dedupe and history saves.
"""

from datetime import date

import pytest

from conftest import envelope, league_row, team_row
from talentradar_data.core.http import DailyLimitExceededError
from talentradar_data.core.models import (
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
from talentradar_data.seeders.reconciler import (
    ERROR_FALLBACK_CLUB,
    FREE_AGENT_CLUB,
    EntityReconciler,
    ResolutionStrategy,
)
from talentradar_data.seeders.results import PopulationSummary

DAILY_LIMIT = {"errors": {"requests": "You have reached the request limit for the day"}, "response": []}


@pytest.fixture
def reconciler(repos, provider, budget) -> EntityReconciler:
    return EntityReconciler(repos, provider, current_season=2025, budget=budget)


@pytest.fixture
def player(repos) -> PlayerRecord:
    return repos.players.save(PlayerRecord(external_id=501, name="Test Player"))


def countries_route(params):
    return envelope([{"name": params["name"], "code": params["name"][:2].upper(), "flag": "https://media/flag.svg"}])


def teams_by_id(params):
    return envelope([team_row(int(params["id"]), f"Club {params['id']}")])


# =========================================================================
# Clubs
# =========================================================================


class TestResolveClub:
    async def test_existing_external_id_needs_no_api_call(self, reconciler, repos, fake_api):
        stored = repos.clubs.save(ClubRecord(external_id=10, name="Colo Colo"))

        resolution = await reconciler.resolve_club(ClubRecord(external_id=10, name="Colo-Colo"))

        assert resolution.strategy is ResolutionStrategy.BY_EXTERNAL_ID
        assert resolution.entity.id == stored.id
        assert fake_api.calls == []

    async def test_unknown_external_id_is_fetched_and_persisted(self, reconciler, repos, fake_api, budget):
        fake_api.route("/teams", teams_by_id)
        fake_api.route("/countries", countries_route)

        resolution = await reconciler.resolve_club(ClubRecord(external_id=77, name="Short Name"))

        club = resolution.entity
        assert resolution.strategy is ResolutionStrategy.BY_EXTERNAL_ID
        assert club.id is not None
        assert club.name == "Club 77"
        assert club.stadium == "Club 77 Stadium"
        assert club.country.id is not None
        assert club.country.code == "CH"
        assert fake_api.calls_to("/teams") == [{"id": "77"}]
        assert budget.calls == 2  # /teams + /countries

    async def test_unknown_external_id_without_api_data_persists_candidate(self, reconciler, repos, fake_api):
        resolution = await reconciler.resolve_club(ClubRecord(external_id=78, name="  Huachipato  "))

        assert resolution.strategy is ResolutionStrategy.BY_EXTERNAL_ID
        assert resolution.entity.name == "Huachipato"
        assert repos.clubs.find_by_external_id(78).id == resolution.entity.id

    async def test_fetch_disabled_skips_api(self, reconciler, fake_api):
        fake_api.route("/teams", teams_by_id)

        resolution = await reconciler.resolve_club(ClubRecord(external_id=79, name="Palestino"), fetch=False)

        assert resolution.entity.name == "Palestino"
        assert fake_api.calls_to("/teams") == []

    async def test_name_match_ignores_case(self, reconciler, repos):
        stored = repos.clubs.save(ClubRecord(name="Universidad de Chile"))

        resolution = await reconciler.resolve_club(ClubRecord(name=" universidad DE chile "))

        assert resolution.strategy is ResolutionStrategy.BY_NAME
        assert resolution.entity.id == stored.id

    async def test_unknown_name_is_created(self, reconciler, repos):
        resolution = await reconciler.resolve_club(ClubRecord(name="Cobreloa"))

        assert resolution.strategy is ResolutionStrategy.BY_NAME
        assert repos.clubs.find_by_name_ignore_case("cobreloa") is not None

    async def test_fallback_used_when_candidate_missing(self, reconciler, repos):
        current = repos.clubs.save(ClubRecord(external_id=5, name="Everton de Viña"))

        resolution = await reconciler.resolve_club(None, fallback=current)

        assert resolution.strategy is ResolutionStrategy.BY_FALLBACK
        assert resolution.entity.id == current.id

    async def test_sentinel_when_nothing_resolves(self, reconciler):
        first = await reconciler.resolve_club(None)
        second = await reconciler.resolve_club(ClubRecord(name="   "))

        assert first.strategy is ResolutionStrategy.SENTINEL
        assert first.entity.name == FREE_AGENT_CLUB
        assert first.entity.is_active is True
        assert first.entity.is_national is False
        assert second.entity.id == first.entity.id

    async def test_unexpected_error_yields_error_fallback_club(self, reconciler, repos, monkeypatch):
        def broken(external_id):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(repos.clubs, "find_by_external_id", broken)

        resolution = await reconciler.resolve_club(ClubRecord(external_id=10, name="Colo Colo"))

        assert resolution.strategy is ResolutionStrategy.SENTINEL
        assert resolution.entity.name == ERROR_FALLBACK_CLUB

    async def test_daily_limit_propagates(self, reconciler, fake_api):
        fake_api.route("/teams", DAILY_LIMIT)

        with pytest.raises(DailyLimitExceededError):
            await reconciler.resolve_club(ClubRecord(external_id=90, name="Ñublense"))

    async def test_exhausted_budget_skips_detail_lookup(self, reconciler, fake_api, budget):
        fake_api.route("/teams", teams_by_id)
        budget.calls = budget.max_calls

        resolution = await reconciler.resolve_club(ClubRecord(external_id=91, name="Audax Italiano"))

        assert resolution.entity.name == "Audax Italiano"
        assert fake_api.calls == []


# =========================================================================
# Countries and leagues
# =========================================================================


class TestResolveCountryAndLeague:
    async def test_country_uses_api_code_and_flag(self, reconciler, fake_api):
        fake_api.route("/countries", envelope([{"name": "Chile", "code": "CL", "flag": "https://media/cl.svg"}]))

        country = await reconciler.resolve_country(CountryRecord(name="Chile"))

        assert country.id is not None
        assert country.code == "CL"
        assert country.flag_url == "https://media/cl.svg"

    async def test_country_found_by_name_is_reused(self, reconciler, repos, fake_api):
        stored = repos.countries.save(CountryRecord(name="Chile", code="CL"))

        country = await reconciler.resolve_country(CountryRecord(name="CHILE"))

        assert country.id == stored.id
        assert fake_api.calls == []

    async def test_country_falls_back_to_provided_data(self, reconciler):
        country = await reconciler.resolve_country(CountryRecord(name="Atlantis", code="ATL"))
        assert country.code == "ATL"

    async def test_blank_country_resolves_to_none(self, reconciler):
        assert await reconciler.resolve_country(None) is None
        assert await reconciler.resolve_country(CountryRecord(name="  ")) is None

    async def test_league_by_external_id(self, reconciler, repos, fake_api):
        stored = repos.leagues.save(LeagueRecord(external_id=1128, name="Primera B", season=2025))

        league = await reconciler.resolve_league(LeagueRecord(external_id=1128, name="Primera B"), 2023)

        assert league.id == stored.id
        assert fake_api.calls == []

    async def test_unknown_league_is_fetched(self, reconciler, fake_api):
        fake_api.route("/leagues", envelope([league_row(265, "Primera Division")]))

        league = await reconciler.resolve_league(LeagueRecord(external_id=265, name="Primera División"), 2024)

        assert league.id is not None
        assert league.name == "Primera Division"
        assert league.season == 2024
        assert league.country.name == "Chile"

    async def test_league_name_match_prefers_same_season(self, reconciler, repos):
        repos.leagues.save(LeagueRecord(name="Copa Chile", season=2025))
        older = repos.leagues.save(LeagueRecord(name="Copa Chile", season=2023))

        league = await reconciler.resolve_league(LeagueRecord(external_id=999, name="Copa Chile"), 2023)

        assert league.id == older.id

    async def test_league_created_with_default_type(self, reconciler, repos):
        league = await reconciler.resolve_league(LeagueRecord(external_id=998, name="Segunda División"), 2024)

        assert league.type == "League"
        assert league.season == 2024
        assert repos.leagues.find_by_name_ignore_case("segunda división").id == league.id

    async def test_missing_league_resolves_to_none(self, reconciler):
        assert await reconciler.resolve_league(None, 2025) is None

    async def test_save_league_stamps_current_season(self, reconciler, repos):
        league = await reconciler.save_league(LeagueRecord(external_id=1128, name="Primera B"))
        again = await reconciler.save_league(LeagueRecord(external_id=1128, name="Primera B"))

        assert league.season == 2025
        assert again.id == league.id
        assert len(repos.leagues.table) == 1


# =========================================================================
# Player-owned records
# =========================================================================


def make_stat(goals: int, season: int = 2025) -> PlayerStatisticRecord:
    return PlayerStatisticRecord(
        club=ClubRecord(external_id=2323, name="Deportes Melipilla"),
        league=LeagueRecord(external_id=1128, name="Primera B", season=season),
        season=season,
        goals=goals,
        appearances=10,
    )


class TestStatistics:
    async def test_upsert_is_idempotent(self, reconciler, repos, player):
        first = await reconciler.upsert_statistic(player, make_stat(goals=2))
        second = await reconciler.upsert_statistic(player, make_stat(goals=5))

        assert first.ok and second.ok
        rows = repos.statistics.find_by_player(player.id)
        assert len(rows) == 1
        assert rows[0].goals == 5
        assert rows[0].club.name == "Deportes Melipilla"
        assert rows[0].league.external_id == 1128

    async def test_different_seasons_are_separate_rows(self, reconciler, repos, player):
        await reconciler.upsert_statistic(player, make_stat(goals=2, season=2024))
        await reconciler.upsert_statistic(player, make_stat(goals=3, season=2025))

        rows = repos.statistics.find_by_player(player.id)
        assert [r.season for r in rows] == [2025, 2024]

    async def test_statistic_without_league_is_skipped(self, reconciler, repos, player):
        stat = make_stat(goals=1).model_copy(update={"league": None})

        result = await reconciler.upsert_statistic(player, stat)

        assert not result.ok
        assert result.kind == "statistic"
        assert repos.statistics.find_by_player(player.id) == []

    async def test_statistic_without_club_uses_fallback(self, reconciler, repos, player):
        current = repos.clubs.save(ClubRecord(external_id=5, name="Everton de Viña"))
        stat = make_stat(goals=1).model_copy(update={"club": None})

        await reconciler.upsert_statistic(player, stat, current)

        assert repos.statistics.find_by_player(player.id)[0].club.id == current.id


class TestTransfers:
    def transfer(self) -> PlayerTransferRecord:
        return PlayerTransferRecord(
            transfer_date=date(2024, 7, 1),
            transfer_type="Loan",
            club_from=ClubRecord(external_id=20, name="Deportes Melipilla"),
            club_to=ClubRecord(external_id=10, name="Colo Colo"),
        )

    async def test_duplicate_transfer_is_skipped(self, reconciler, repos, player):
        first = await reconciler.save_transfer(player, self.transfer())
        second = await reconciler.save_transfer(player, self.transfer())

        assert first.ok
        assert second.ok and second.skipped
        assert second.reason == "duplicate"
        assert len(repos.transfers.find_by_player(player.id)) == 1

        summary = PopulationSummary()
        summary.extend([first, second])
        assert summary.record_counts()["transfer"] == {"saved": 1, "skipped": 1, "failed": 0}

    async def test_transfer_without_date_is_always_saved(self, reconciler, repos, player):
        undated = self.transfer().model_copy(update={"transfer_date": None})

        await reconciler.save_transfer(player, undated)
        await reconciler.save_transfer(player, undated)

        assert len(repos.transfers.find_by_player(player.id)) == 2

    async def test_transfer_with_missing_origin(self, reconciler, repos, player):
        transfer = self.transfer().model_copy(update={"club_from": None})

        result = await reconciler.save_transfer(player, transfer)

        stored = repos.transfers.find_by_player(player.id)[0]
        assert result.ok
        assert stored.club_from is None
        assert stored.club_to.external_id == 10


class TestHistory:
    async def test_injury_resolves_without_api_lookups(self, reconciler, repos, fake_api, player):
        fake_api.route("/teams", teams_by_id)
        fake_api.route("/leagues", envelope([league_row(1128)]))
        injury = PlayerInjuryRecord(
            club=ClubRecord(external_id=2323, name="Deportes Melipilla"),
            league=LeagueRecord(external_id=1128, name="Primera B", season=2025),
            fixture_id=999,
            injury_type="Missing Fixture",
            reason="Knee Injury",
            start_date=date(2025, 3, 2),
        )

        result = await reconciler.save_injury(player, injury)

        assert result.ok
        assert fake_api.calls_to("/teams") == []
        assert fake_api.calls_to("/leagues") == []
        stored = list(repos.history.injuries.rows())[0]
        assert stored.club.name == "Deportes Melipilla"
        assert stored.league.external_id == 1128

    async def test_injury_falls_back_to_context(self, reconciler, repos, player):
        club = repos.clubs.save(ClubRecord(external_id=5, name="Everton de Viña"))
        league = repos.leagues.save(LeagueRecord(external_id=1128, name="Primera B", season=2025))

        await reconciler.save_injury(player, PlayerInjuryRecord(fixture_id=1), club, league)

        stored = list(repos.history.injuries.rows())[0]
        assert stored.club.id == club.id
        assert stored.league.id == league.id

    async def test_sidelined_and_trophies_are_appended(self, reconciler, repos, player):
        reconciler.save_sidelined(player, PlayerSidelinedRecord(type="Ankle", start_date=date(2024, 1, 1)))
        reconciler.save_trophy(player, PlayerTrophyRecord(league_name="Primera B", season="2023", place="Winner"))
        reconciler.save_trophy(player, PlayerTrophyRecord(league_name="Primera B", season="2023", place="Winner"))

        assert repos.history.count_for_player(player.id) == {"injuries": 0, "sidelined": 1, "trophies": 2}
