"""
Pydantic models for the scouting database entities.

These models are used for:
- Carrying parsed API-Football data into the reconciler
- Type-safe query results from the repositories
- Run summaries exposed by the admin endpoints

A persisted entity is the same model with ``id`` set. Repositories hand back
copies, so the pipeline never mutates a stored row through a shared object.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# Scalar statistic columns, in storage order. Updating a statistic copies
# exactly these fields onto the persisted row.
STAT_FIELDS: tuple[str, ...] = (
    "appearances",
    "lineups",
    "minutes_played",
    "position",
    "rating",
    "is_captain",
    "goals",
    "assists",
    "goals_conceded",
    "saves",
    "shots_total",
    "shots_on_target",
    "passes_total",
    "passes_key",
    "pass_accuracy",
    "tackles_total",
    "tackles_blocks",
    "interceptions",
    "dribbles_attempts",
    "dribbles_success",
    "fouls_drawn",
    "fouls_committed",
    "yellow_cards",
    "red_cards",
    "penalties_won",
    "penalties_scored",
    "penalties_missed",
    "substitutes_in",
    "substitutes_out",
    "substitutes_bench",
)


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years between ``date_of_birth`` and ``today``."""
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


# =============================================================================
# Reference Entities
# =============================================================================


class CountryRecord(BaseModel):
    """Country referenced by leagues and clubs."""

    id: Optional[int] = None
    name: str
    code: Optional[str] = Field(default=None, max_length=10)
    flag_url: Optional[str] = None


class LeagueRecord(BaseModel):
    """League or cup competition."""

    id: Optional[int] = None
    external_id: Optional[int] = None
    name: str
    type: Optional[str] = None  # "League" or "Cup"
    season: Optional[int] = None
    country: Optional[CountryRecord] = None
    logo_url: Optional[str] = None


class ClubRecord(BaseModel):
    """Club or national team."""

    id: Optional[int] = None
    external_id: Optional[int] = None
    name: Optional[str] = None
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    country: Optional[CountryRecord] = None
    is_national: bool = False
    is_active: bool = True
    founded: Optional[int] = None
    city: Optional[str] = None
    stadium: Optional[str] = None
    stadium_capacity: Optional[int] = None
    league_id: Optional[int] = None  # persisted league the club was listed under


# =============================================================================
# Player Entities
# =============================================================================


class PlayerStatisticRecord(BaseModel):
    """Per-season statistics of one player for one club in one league."""

    id: Optional[int] = None
    player_id: Optional[int] = None
    club: Optional[ClubRecord] = None
    league: Optional[LeagueRecord] = None
    season: Optional[int] = None

    appearances: Optional[int] = None
    lineups: Optional[int] = None
    minutes_played: Optional[int] = None
    position: Optional[str] = None
    rating: Optional[Decimal] = None
    is_captain: Optional[bool] = None
    goals: Optional[int] = None
    assists: Optional[int] = None
    goals_conceded: Optional[int] = None
    saves: Optional[int] = None
    shots_total: Optional[int] = None
    shots_on_target: Optional[int] = None
    passes_total: Optional[int] = None
    passes_key: Optional[int] = None
    pass_accuracy: Optional[int] = None
    tackles_total: Optional[int] = None
    tackles_blocks: Optional[int] = None
    interceptions: Optional[int] = None
    dribbles_attempts: Optional[int] = None
    dribbles_success: Optional[int] = None
    fouls_drawn: Optional[int] = None
    fouls_committed: Optional[int] = None
    yellow_cards: Optional[int] = None
    red_cards: Optional[int] = None
    penalties_won: Optional[int] = None
    penalties_scored: Optional[int] = None
    penalties_missed: Optional[int] = None
    substitutes_in: Optional[int] = None
    substitutes_out: Optional[int] = None
    substitutes_bench: Optional[int] = None

    def scalar_values(self) -> dict:
        """The statistic columns, without identity."""
        return {name: getattr(self, name) for name in STAT_FIELDS}


class PlayerRecord(BaseModel):
    """Player master record."""

    id: Optional[int] = None
    external_id: int
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    birth_place: Optional[str] = None
    birth_country: Optional[str] = None
    nationality: Optional[str] = None
    position: Optional[str] = None
    height_cm: Optional[int] = None
    weight_kg: Optional[int] = None
    photo_url: Optional[str] = None
    is_injured: bool = False
    jersey_number: Optional[int] = None
    current_club: Optional[ClubRecord] = None
    statistics: list[PlayerStatisticRecord] = Field(default_factory=list)

    def age(self, today: Optional[date] = None) -> Optional[int]:
        if self.date_of_birth is None:
            return None
        return age_on(self.date_of_birth, today or date.today())

    def is_u21_eligible(self, today: Optional[date] = None, max_age: int = 21) -> bool:
        """
        Check if the player is young enough to be tracked.

        A player turning ``max_age + 1`` today is no longer eligible, and a
        player without a known date of birth is never eligible.
        """
        age = self.age(today)
        return age is not None and age <= max_age


class PlayerTransferRecord(BaseModel):
    """Transfer between two clubs."""

    id: Optional[int] = None
    player_id: Optional[int] = None
    transfer_date: Optional[date] = None
    transfer_type: Optional[str] = None
    club_from: Optional[ClubRecord] = None
    club_to: Optional[ClubRecord] = None


class PlayerInjuryRecord(BaseModel):
    """Injury reported against a fixture."""

    id: Optional[int] = None
    player_id: Optional[int] = None
    club: Optional[ClubRecord] = None
    league: Optional[LeagueRecord] = None
    fixture_id: Optional[int] = None
    injury_type: Optional[str] = None
    reason: Optional[str] = None
    start_date: Optional[date] = None


class PlayerSidelinedRecord(BaseModel):
    """Period during which a player was unavailable."""

    id: Optional[int] = None
    player_id: Optional[int] = None
    type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PlayerTrophyRecord(BaseModel):
    """Trophy won (or placed in) by a player."""

    id: Optional[int] = None
    player_id: Optional[int] = None
    league_name: Optional[str] = None
    country: Optional[str] = None
    season: Optional[str] = None  # e.g. "2022/2023"
    place: Optional[str] = None
