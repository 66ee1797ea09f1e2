"""
Tests for API-Football response parsing and field-level parsers.
"""

from datetime import date
from decimal import Decimal

from conftest import league_row, player_row, stat_block, team_row
from talentradar_data.providers import parsers
from talentradar_data.seeders.utils import DataParsers


class TestDataParsers:
    def test_height_and_weight(self):
        assert DataParsers.parse_height_cm("184 cm") == 184
        assert DataParsers.parse_height_cm("184") is None
        assert DataParsers.parse_height_cm("unknown cm") is None
        assert DataParsers.parse_height_cm("unknown") is None
        assert DataParsers.parse_height_cm(None) is None
        assert DataParsers.parse_weight_kg("72 KG") == 72

    def test_parse_date(self):
        assert DataParsers.parse_date("2004-05-01") == date(2004, 5, 1)
        assert DataParsers.parse_date("2021-04-07T19:00:00+00:00") == date(2021, 4, 7)
        assert DataParsers.parse_date("07/04/2021") is None
        assert DataParsers.parse_date(None) is None

    def test_parse_rating(self):
        assert DataParsers.parse_rating("7.266667") == Decimal("7.27")
        assert DataParsers.parse_rating("6.125") == Decimal("6.13")
        assert DataParsers.parse_rating("11.5") is None
        assert DataParsers.parse_rating("n/a") is None
        assert DataParsers.parse_rating(None) is None

    def test_truncate_country_code(self):
        assert DataParsers.truncate_country_code("GB-ENG") == "GB-ENG"
        assert DataParsers.truncate_country_code("ABCDEFGHIJKLMN", "Nowhere") == "ABCDEFGHIJ"
        assert DataParsers.truncate_country_code(None) is None

    def test_safe_int(self):
        assert DataParsers.safe_int("81%") == 81
        assert DataParsers.safe_int("1,234") == 1234
        assert DataParsers.safe_int("abc", 0) == 0
        assert DataParsers.safe_int(None) is None
        assert DataParsers.safe_int("inf") is None
        assert DataParsers.safe_int("1e999", 0) == 0
        assert DataParsers.safe_int(float("nan")) is None
        assert DataParsers.safe_int(float("-inf"), 0) == 0


class TestReferenceParsers:
    def test_parse_league_with_country(self):
        league = parsers.parse_league(league_row(1128, "Primera B", "Chile"))

        assert league.external_id == 1128
        assert league.name == "Primera B"
        assert league.type == "League"
        assert league.country.name == "Chile"
        assert league.country.code == "CL"

    def test_parse_league_without_block(self):
        assert parsers.parse_league({"country": {"name": "Chile"}}) is None

    def test_parse_team_with_venue(self):
        club = parsers.parse_team(team_row(2323, "Deportes Melipilla"))

        assert club.external_id == 2323
        assert club.name == "Deportes Melipilla"
        assert club.short_name == "DEP"
        assert club.stadium == "Deportes Melipilla Stadium"
        assert club.stadium_capacity == 20000
        assert club.country.name == "Chile"
        assert club.is_national is False

    def test_parse_national_team(self):
        club = parsers.parse_team(team_row(2383, "Chile U20", national=True))
        assert club.is_national is True


class TestPlayerParsers:
    def test_parse_player_with_statistics(self):
        row = player_row(
            501,
            birth_date="2005-02-14",
            statistics=[
                stat_block(2323, "Deportes Melipilla", position="Attacker", number=9),
                stat_block(2383, "Chile U20", league_id=10, league_name="Friendlies", number=11),
            ],
        )

        player = parsers.parse_player(row, 2025)

        assert player.external_id == 501
        assert player.date_of_birth == date(2005, 2, 14)
        assert player.height_cm == 178
        assert player.weight_kg == 70
        assert player.position == "Attacker"
        assert player.jersey_number == 9
        assert len(player.statistics) == 2
        assert all(s.season == 2025 for s in player.statistics)

    def test_parse_statistics_fields(self):
        stat = parsers.parse_player_statistics(stat_block(2323, "Deportes Melipilla", appearances=12, goals=4))

        assert stat.season == 2025  # from the league block
        assert stat.club.external_id == 2323
        assert stat.club.is_active is True
        assert stat.league.external_id == 1128
        assert stat.league.country.name == "Chile"
        assert stat.appearances == 12
        assert stat.goals == 4
        assert stat.rating == Decimal("7.27")
        assert stat.pass_accuracy == 81
        assert stat.red_cards == 1  # red + yellowred
        assert stat.penalties_scored == 1
        assert stat.substitutes_bench == 2

    def test_missing_player_block(self):
        assert parsers.parse_player({"statistics": []}) is None

    def test_unparsable_fields_are_left_unset(self):
        row = player_row(502)
        row["player"]["height"] = "tall"
        row["player"]["birth"]["date"] = "unknown"

        player = parsers.parse_player(row)

        assert player.height_cm is None
        assert player.date_of_birth is None

    def test_non_finite_numbers_only_drop_the_field(self):
        block = stat_block(2323, "Deportes Melipilla")
        block["passes"]["accuracy"] = "inf"
        block["shots"]["total"] = float("nan")

        stat = parsers.parse_player_statistics(block)

        assert stat is not None
        assert stat.pass_accuracy is None
        assert stat.shots_total is None
        assert stat.passes_total == 300

        row = player_row(503, statistics=[block])
        player = parsers.parse_player(row)

        assert player is not None
        assert player.statistics[0].pass_accuracy is None

    def test_parse_player_listing(self):
        assert parsers.parse_player_listing(player_row(7, "2006-01-01")) == (7, "2006-01-01")
        assert parsers.parse_player_listing({}) == (None, None)


class TestHistoryParsers:
    def test_parse_transfer_directions(self):
        transfer = parsers.parse_transfer(
            {
                "date": "2024-07-01",
                "type": "Loan",
                "teams": {
                    "in": {"id": 10, "name": "Colo Colo", "logo": None},
                    "out": {"id": 20, "name": "Deportes Melipilla", "logo": None},
                },
            }
        )

        assert transfer.transfer_date == date(2024, 7, 1)
        assert transfer.transfer_type == "Loan"
        assert transfer.club_to.external_id == 10
        assert transfer.club_from.external_id == 20

    def test_parse_injury(self):
        injury = parsers.parse_injury(
            {
                "player": {"id": 501, "type": "Missing Fixture", "reason": "Knee Injury"},
                "team": {"id": 2323, "name": "Deportes Melipilla"},
                "fixture": {"id": 999, "date": "2025-03-02T21:00:00+00:00"},
                "league": {"id": 1128, "name": "Primera B", "season": 2025},
            }
        )

        assert injury.injury_type == "Missing Fixture"
        assert injury.reason == "Knee Injury"
        assert injury.fixture_id == 999
        assert injury.start_date == date(2025, 3, 2)
        assert injury.club.external_id == 2323
        assert injury.league.season == 2025

    def test_parse_sidelined_and_trophy(self):
        sidelined = parsers.parse_sidelined({"type": "Ankle Injury", "start": "2024-01-10", "end": "2024-02-01"})
        assert sidelined.end_date == date(2024, 2, 1)

        trophy = parsers.parse_trophy({"league": "Primera B", "country": "Chile", "season": 2023, "place": "Winner"})
        assert trophy.season == "2023"
        assert trophy.place == "Winner"
