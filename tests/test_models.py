"""
Tests for record models, U21 eligibility and the call budget.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from talentradar_data.core.budget import ApiCallBudget
from talentradar_data.core.config import Settings
from talentradar_data.core.models import STAT_FIELDS, CountryRecord, PlayerRecord, PlayerStatisticRecord, age_on


class TestU21Eligibility:
    """A player is eligible up to and including age 21."""

    def test_turning_22_today_is_not_eligible(self):
        player = PlayerRecord(external_id=1, date_of_birth=date(2003, 8, 1))
        assert player.age(date(2025, 8, 1)) == 22
        assert not player.is_u21_eligible(date(2025, 8, 1))

    def test_day_before_22nd_birthday_is_eligible(self):
        player = PlayerRecord(external_id=1, date_of_birth=date(2003, 8, 1))
        assert player.age(date(2025, 7, 31)) == 21
        assert player.is_u21_eligible(date(2025, 7, 31))

    def test_unknown_birth_date_is_not_eligible(self):
        player = PlayerRecord(external_id=1)
        assert player.age() is None
        assert not player.is_u21_eligible()

    def test_custom_max_age(self):
        player = PlayerRecord(external_id=1, date_of_birth=date(2006, 1, 1))
        assert player.is_u21_eligible(date(2025, 8, 1), max_age=19)
        assert not player.is_u21_eligible(date(2025, 8, 1), max_age=18)

    def test_age_on_leap_day(self):
        assert age_on(date(2004, 2, 29), date(2025, 2, 28)) == 20
        assert age_on(date(2004, 2, 29), date(2025, 3, 1)) == 21


class TestRecords:
    def test_country_code_width_is_enforced(self):
        with pytest.raises(ValidationError):
            CountryRecord(name="Nowhere", code="ABCDEFGHIJK")

    def test_statistic_scalar_values_exclude_identity(self):
        stat = PlayerStatisticRecord(id=3, player_id=4, season=2025, goals=5, appearances=9)
        values = stat.scalar_values()

        assert set(values) == set(STAT_FIELDS)
        assert values["goals"] == 5
        assert "id" not in values and "season" not in values


class TestApiCallBudget:
    def test_thresholds(self):
        budget = ApiCallBudget(max_calls=100)
        for _ in range(94):
            budget.record()
        assert not budget.near_limit

        budget.record()
        assert budget.near_limit
        assert not budget.exhausted
        assert budget.remaining == 5

        for _ in range(5):
            budget.record()
        assert budget.exhausted
        assert str(budget) == "100/100"

        budget.reset()
        assert budget.calls == 0 and not budget.exhausted


class TestSettings:
    def test_fallback_seasons(self):
        settings = Settings(_env_file=None, current_season=2025)
        assert settings.fallback_seasons == [2024, 2023, 2022, 2021, 2020]

