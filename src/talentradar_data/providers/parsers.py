"""
API-Football response parsers.

Pure functions turning one element of an API-Football ``response`` array
into a record from ``core.models``. Optional fields that are missing or null
leave the record field unset; a payload missing its mandatory block yields
None instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

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
from ..seeders.utils import DataParsers

logger = logging.getLogger(__name__)

_p = DataParsers


def _block(data: Any, key: str) -> dict[str, Any]:
    """Return ``data[key]`` when it is an object, else an empty dict."""
    if not isinstance(data, dict):
        return {}
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _club_ref(team: dict[str, Any]) -> Optional[ClubRecord]:
    """Club reference embedded in statistics/transfer/injury rows."""
    external_id = _p.safe_int(team.get("id"))
    if external_id is None:
        return None
    return ClubRecord(
        external_id=external_id,
        name=_p.safe_str(team.get("name")),
        logo_url=team.get("logo"),
    )


def _league_ref(league: dict[str, Any]) -> Optional[LeagueRecord]:
    """League reference embedded in statistics/injury rows."""
    external_id = _p.safe_int(league.get("id"))
    name = _p.safe_str(league.get("name"))
    if external_id is None or name is None:
        return None

    country = None
    country_name = _p.safe_str(league.get("country"))
    if country_name:
        country = CountryRecord(name=country_name)

    return LeagueRecord(
        external_id=external_id,
        name=name,
        logo_url=league.get("logo"),
        season=_p.safe_int(league.get("season")),
        country=country,
    )


# =============================================================================
# Reference entities
# =============================================================================


def parse_country(data: Any) -> Optional[CountryRecord]:
    """Parse an element of ``/countries``."""
    if not isinstance(data, dict):
        logger.warning("Country data is null in API response")
        return None

    name = _p.safe_str(data.get("name"))
    if name is None:
        return None

    return CountryRecord(
        name=name,
        code=_p.truncate_country_code(data.get("code"), name),
        flag_url=data.get("flag"),
    )


def parse_league(data: Any) -> Optional[LeagueRecord]:
    """Parse an element of ``/leagues`` (``{"league": ..., "country": ...}``)."""
    league = _block(data, "league")
    if not league:
        logger.warning("League information is null in API response")
        return None

    external_id = _p.safe_int(league.get("id"))
    name = _p.safe_str(league.get("name"))
    if external_id is None or name is None:
        logger.warning("League without id or name in API response")
        return None

    country = None
    country_data = _block(data, "country")
    if country_data:
        country = parse_country(country_data)

    return LeagueRecord(
        external_id=external_id,
        name=name,
        type=league.get("type"),
        logo_url=league.get("logo"),
        country=country,
    )


def parse_team(data: Any) -> Optional[ClubRecord]:
    """Parse an element of ``/teams`` (``{"team": ..., "venue": ...}``)."""
    team = _block(data, "team")
    if not team:
        logger.warning("Team information is null in API response")
        return None

    external_id = _p.safe_int(team.get("id"))
    name = _p.safe_str(team.get("name"))
    if external_id is None and name is None:
        return None

    venue = _block(data, "venue")
    country_name = _p.safe_str(team.get("country"))

    return ClubRecord(
        external_id=external_id,
        name=name,
        short_name=team.get("code"),
        logo_url=team.get("logo"),
        is_national=bool(team.get("national")),
        country=CountryRecord(name=country_name) if country_name else None,
        founded=_p.safe_int(team.get("founded")),
        stadium=venue.get("name"),
        stadium_capacity=_p.safe_int(venue.get("capacity")),
        city=venue.get("city"),
    )


# =============================================================================
# Players
# =============================================================================


def parse_player_statistics(data: Any, season: Optional[int] = None) -> Optional[PlayerStatisticRecord]:
    """
    Parse one element of a player's ``statistics`` array.

    Args:
        data: Statistics block (team, league, games, goals, ...)
        season: Season the block was requested for; falls back to the
            league's own season when not given

    Returns:
        PlayerStatisticRecord, or None if ``data`` is not an object
    """
    if not isinstance(data, dict):
        logger.warning("Statistics data is null for player")
        return None

    club = _club_ref(_block(data, "team"))
    if club is not None:
        club.is_active = True
    league = _league_ref(_block(data, "league"))

    games = _block(data, "games")
    goals = _block(data, "goals")
    shots = _block(data, "shots")
    passes = _block(data, "passes")
    tackles = _block(data, "tackles")
    dribbles = _block(data, "dribbles")
    fouls = _block(data, "fouls")
    cards = _block(data, "cards")
    penalty = _block(data, "penalty")
    substitutes = _block(data, "substitutes")

    red_cards = _p.safe_int(cards.get("red"))
    yellow_red = _p.safe_int(cards.get("yellowred"))
    if yellow_red is not None:
        red_cards = (red_cards or 0) + yellow_red

    if season is None and league is not None:
        season = league.season

    return PlayerStatisticRecord(
        club=club,
        league=league,
        season=season,
        # API-Football spells it "appearences"
        appearances=_p.safe_int(games.get("appearences")),
        lineups=_p.safe_int(games.get("lineups")),
        minutes_played=_p.safe_int(games.get("minutes")),
        position=games.get("position"),
        rating=_p.parse_rating(games.get("rating")),
        is_captain=_p.safe_bool(games.get("captain")),
        goals=_p.safe_int(goals.get("total")),
        assists=_p.safe_int(goals.get("assists")),
        goals_conceded=_p.safe_int(goals.get("conceded")),
        saves=_p.safe_int(goals.get("saves")),
        shots_total=_p.safe_int(shots.get("total")),
        shots_on_target=_p.safe_int(shots.get("on")),
        passes_total=_p.safe_int(passes.get("total")),
        passes_key=_p.safe_int(passes.get("key")),
        pass_accuracy=_p.safe_int(passes.get("accuracy")),
        tackles_total=_p.safe_int(tackles.get("total")),
        tackles_blocks=_p.safe_int(tackles.get("blocks")),
        interceptions=_p.safe_int(tackles.get("interceptions")),
        dribbles_attempts=_p.safe_int(dribbles.get("attempts")),
        dribbles_success=_p.safe_int(dribbles.get("success")),
        fouls_drawn=_p.safe_int(fouls.get("drawn")),
        fouls_committed=_p.safe_int(fouls.get("committed")),
        yellow_cards=_p.safe_int(cards.get("yellow")),
        red_cards=red_cards,
        penalties_won=_p.safe_int(penalty.get("won")),
        penalties_scored=_p.safe_int(penalty.get("scored")),
        penalties_missed=_p.safe_int(penalty.get("missed")),
        substitutes_in=_p.safe_int(substitutes.get("in")),
        substitutes_out=_p.safe_int(substitutes.get("out")),
        substitutes_bench=_p.safe_int(substitutes.get("bench")),
    )


def parse_player(data: Any, season: Optional[int] = None) -> Optional[PlayerRecord]:
    """
    Parse an element of ``/players?id=&season=``.

    Position and jersey number come from the first statistics block; every
    statistics block is parsed into ``PlayerRecord.statistics``.
    """
    player = _block(data, "player")
    if not player:
        logger.warning("Player information is null in API response")
        return None

    external_id = _p.safe_int(player.get("id"))
    if external_id is None:
        logger.warning("Player without id in API response")
        return None

    birth = _block(player, "birth")
    record = PlayerRecord(
        external_id=external_id,
        name=_p.safe_str(player.get("name")),
        first_name=player.get("firstname"),
        last_name=player.get("lastname"),
        nationality=player.get("nationality"),
        photo_url=player.get("photo"),
        is_injured=bool(player.get("injured")),
        date_of_birth=_p.parse_date(birth.get("date")),
        birth_place=birth.get("place"),
        birth_country=birth.get("country"),
        height_cm=_p.parse_height_cm(player.get("height")),
        weight_kg=_p.parse_weight_kg(player.get("weight")),
    )

    statistics = data.get("statistics") or []
    for block in statistics:
        stat = parse_player_statistics(block, season)
        if stat is not None:
            record.statistics.append(stat)

    if statistics:
        games = _block(statistics[0], "games")
        record.position = games.get("position")
        record.jersey_number = _p.safe_int(games.get("number"))

    return record


def parse_player_listing(data: Any) -> tuple[Optional[int], Optional[str]]:
    """Extract ``(player id, birth date string)`` from a ``/players`` page row."""
    player = _block(data, "player")
    return _p.safe_int(player.get("id")), _block(player, "birth").get("date")


# =============================================================================
# Player history
# =============================================================================


def parse_transfer(data: Any) -> Optional[PlayerTransferRecord]:
    """
    Parse one element of ``/transfers`` ``transfers`` array.

    ``teams.in`` is the destination club, ``teams.out`` the club left.
    """
    if not isinstance(data, dict):
        return None

    teams = _block(data, "teams")
    return PlayerTransferRecord(
        transfer_date=_p.parse_date(data.get("date")),
        transfer_type=data.get("type"),
        club_to=_club_ref(_block(teams, "in")),
        club_from=_club_ref(_block(teams, "out")),
    )


def parse_injury(data: Any) -> Optional[PlayerInjuryRecord]:
    """Parse an element of ``/injuries``; the fixture date is the start date."""
    if not isinstance(data, dict):
        return None

    player = _block(data, "player")
    fixture = _block(data, "fixture")
    return PlayerInjuryRecord(
        injury_type=player.get("type"),
        reason=player.get("reason"),
        club=_club_ref(_block(data, "team")),
        league=_league_ref(_block(data, "league")),
        fixture_id=_p.safe_int(fixture.get("id")),
        start_date=_p.parse_date(fixture.get("date")),
    )


def parse_sidelined(data: Any) -> Optional[PlayerSidelinedRecord]:
    """Parse an element of ``/sidelined``."""
    if not isinstance(data, dict):
        return None

    return PlayerSidelinedRecord(
        type=data.get("type"),
        start_date=_p.parse_date(data.get("start")),
        end_date=_p.parse_date(data.get("end")),
    )


def parse_trophy(data: Any) -> Optional[PlayerTrophyRecord]:
    """Parse an element of ``/trophies``."""
    if not isinstance(data, dict):
        return None

    return PlayerTrophyRecord(
        league_name=data.get("league"),
        country=data.get("country"),
        season=_p.safe_str(data.get("season")),
        place=data.get("place"),
    )
