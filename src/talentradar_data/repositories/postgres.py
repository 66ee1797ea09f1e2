"""
PostgreSQL repository implementations.

Provides PostgreSQL-specific implementations of the repository interfaces.
Nested references (a club's country, a statistic's club and league) are
stored as foreign keys and rebuilt into records on read.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Optional

from ..core.models import (
    STAT_FIELDS,
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
from .base import (
    ClubRepository,
    CountryRepository,
    LeagueRepository,
    PlayerHistoryRepository,
    PlayerRepository,
    PlayerStatisticRepository,
    PlayerTransferRepository,
    RepositorySet,
)

if TYPE_CHECKING:
    from ..pg_connection import PostgresDB

logger = logging.getLogger(__name__)


def _ref_id(record: Any) -> Optional[int]:
    return record.id if record is not None else None


def _upsert(db: "PostgresDB", table: str, record_id: Optional[int], values: dict[str, Any]) -> int:
    """INSERT when ``record_id`` is None, else UPDATE that row. Returns the id."""
    columns = list(values.keys())
    params = tuple(values[c] for c in columns)

    if record_id is None:
        placeholders = ", ".join(["%s"] * len(columns))
        row = db.execute_returning(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
            params,
        )
        return row["id"]

    assignments = ", ".join(f"{c} = %s" for c in columns)
    db.execute(f"UPDATE {table} SET {assignments} WHERE id = %s", params + (record_id,))
    return record_id


# =============================================================================
# Countries, Leagues, Clubs
# =============================================================================


class PostgresCountryRepository(CountryRepository):
    """PostgreSQL implementation for country data access."""

    def __init__(self, db: "PostgresDB"):
        self.db = db

    def find_by_id(self, country_id: Optional[int]) -> Optional[CountryRecord]:
        if country_id is None:
            return None
        row = self.db.fetchone("SELECT * FROM countries WHERE id = %s", (country_id,))
        return CountryRecord(**row) if row else None

    def find_by_name_ignore_case(self, name: str) -> Optional[CountryRecord]:
        row = self.db.fetchone(
            "SELECT * FROM countries WHERE LOWER(name) = LOWER(%s) ORDER BY id LIMIT 1",
            (name.strip(),),
        )
        return CountryRecord(**row) if row else None

    def save(self, country: CountryRecord) -> CountryRecord:
        country_id = _upsert(
            self.db,
            "countries",
            country.id,
            {"name": country.name, "code": country.code, "flag_url": country.flag_url},
        )
        return country.model_copy(update={"id": country_id}, deep=True)


class PostgresLeagueRepository(LeagueRepository):
    """PostgreSQL implementation for league data access."""

    def __init__(self, db: "PostgresDB", countries: PostgresCountryRepository):
        self.db = db
        self.countries = countries

    def _from_row(self, row: dict[str, Any]) -> LeagueRecord:
        country_id = row.pop("country_id", None)
        return LeagueRecord(**row, country=self.countries.find_by_id(country_id))

    def find_by_id(self, league_id: Optional[int]) -> Optional[LeagueRecord]:
        if league_id is None:
            return None
        row = self.db.fetchone("SELECT * FROM leagues WHERE id = %s", (league_id,))
        return self._from_row(row) if row else None

    def find_by_external_id(self, external_id: int) -> Optional[LeagueRecord]:
        row = self.db.fetchone("SELECT * FROM leagues WHERE external_id = %s", (external_id,))
        return self._from_row(row) if row else None

    def find_by_name_ignore_case(self, name: str) -> Optional[LeagueRecord]:
        row = self.db.fetchone(
            "SELECT * FROM leagues WHERE LOWER(name) = LOWER(%s) ORDER BY id LIMIT 1",
            (name.strip(),),
        )
        return self._from_row(row) if row else None

    def find_by_name_containing(self, fragment: str) -> list[LeagueRecord]:
        rows = self.db.fetchall(
            """
            SELECT * FROM leagues
            WHERE name ILIKE %s
            ORDER BY season DESC NULLS LAST, id
            """,
            (f"%{fragment.strip()}%",),
        )
        return [self._from_row(row) for row in rows]

    def save(self, league: LeagueRecord) -> LeagueRecord:
        league_id = _upsert(
            self.db,
            "leagues",
            league.id,
            {
                "external_id": league.external_id,
                "name": league.name,
                "type": league.type,
                "season": league.season,
                "country_id": _ref_id(league.country),
                "logo_url": league.logo_url,
            },
        )
        return league.model_copy(update={"id": league_id}, deep=True)


class PostgresClubRepository(ClubRepository):
    """PostgreSQL implementation for club data access."""

    def __init__(self, db: "PostgresDB", countries: PostgresCountryRepository):
        self.db = db
        self.countries = countries

    def _from_row(self, row: dict[str, Any]) -> ClubRecord:
        country_id = row.pop("country_id", None)
        return ClubRecord(**row, country=self.countries.find_by_id(country_id))

    def find_by_id(self, club_id: Optional[int]) -> Optional[ClubRecord]:
        if club_id is None:
            return None
        row = self.db.fetchone("SELECT * FROM clubs WHERE id = %s", (club_id,))
        return self._from_row(row) if row else None

    def find_by_external_id(self, external_id: int) -> Optional[ClubRecord]:
        row = self.db.fetchone("SELECT * FROM clubs WHERE external_id = %s", (external_id,))
        return self._from_row(row) if row else None

    def find_by_name_ignore_case(self, name: str) -> Optional[ClubRecord]:
        row = self.db.fetchone(
            "SELECT * FROM clubs WHERE LOWER(TRIM(name)) = LOWER(%s) ORDER BY id LIMIT 1",
            (name.strip(),),
        )
        return self._from_row(row) if row else None

    def find_by_league(self, league_id: int) -> list[ClubRecord]:
        rows = self.db.fetchall("SELECT * FROM clubs WHERE league_id = %s ORDER BY id", (league_id,))
        return [self._from_row(row) for row in rows]

    def save(self, club: ClubRecord) -> ClubRecord:
        club_id = _upsert(
            self.db,
            "clubs",
            club.id,
            {
                "external_id": club.external_id,
                "name": club.name,
                "short_name": club.short_name,
                "logo_url": club.logo_url,
                "country_id": _ref_id(club.country),
                "is_national": club.is_national,
                "is_active": club.is_active,
                "founded": club.founded,
                "city": club.city,
                "stadium": club.stadium,
                "stadium_capacity": club.stadium_capacity,
                "league_id": club.league_id,
            },
        )
        return club.model_copy(update={"id": club_id}, deep=True)


# =============================================================================
# Players
# =============================================================================


PLAYER_COLUMNS = (
    "external_id",
    "name",
    "first_name",
    "last_name",
    "date_of_birth",
    "birth_place",
    "birth_country",
    "nationality",
    "position",
    "height_cm",
    "weight_kg",
    "photo_url",
    "is_injured",
    "jersey_number",
)


class PostgresPlayerRepository(PlayerRepository):
    """PostgreSQL implementation for player data access."""

    def __init__(self, db: "PostgresDB", clubs: PostgresClubRepository):
        self.db = db
        self.clubs = clubs

    def _from_row(self, row: dict[str, Any]) -> PlayerRecord:
        values = {c: row[c] for c in PLAYER_COLUMNS}
        return PlayerRecord(
            id=row["id"],
            **values,
            current_club=self.clubs.find_by_id(row.get("current_club_id")),
        )

    def find_by_external_id(self, external_id: int) -> Optional[PlayerRecord]:
        row = self.db.fetchone("SELECT * FROM players WHERE external_id = %s", (external_id,))
        return self._from_row(row) if row else None

    def exists_by_external_id(self, external_id: int) -> bool:
        row = self.db.fetchone(
            "SELECT EXISTS(SELECT 1 FROM players WHERE external_id = %s) AS exists",
            (external_id,),
        )
        return bool(row and row["exists"])

    def find_by_name_ignore_case(self, name: str) -> Optional[PlayerRecord]:
        row = self.db.fetchone(
            "SELECT * FROM players WHERE LOWER(name) = LOWER(%s) ORDER BY id LIMIT 1",
            (name.strip(),),
        )
        return self._from_row(row) if row else None

    def save(self, player: PlayerRecord) -> PlayerRecord:
        values = {c: getattr(player, c) for c in PLAYER_COLUMNS}
        values["current_club_id"] = _ref_id(player.current_club)
        player_id = _upsert(self.db, "players", player.id, values)
        return player.model_copy(update={"id": player_id, "statistics": []}, deep=True)

    def count(self) -> int:
        row = self.db.fetchone("SELECT COUNT(*) AS count FROM players")
        return row["count"] if row else 0


class PostgresPlayerStatisticRepository(PlayerStatisticRepository):
    """PostgreSQL implementation for player statistics."""

    def __init__(
        self,
        db: "PostgresDB",
        clubs: PostgresClubRepository,
        leagues: PostgresLeagueRepository,
    ):
        self.db = db
        self.clubs = clubs
        self.leagues = leagues

    def _from_row(self, row: dict[str, Any]) -> PlayerStatisticRecord:
        return PlayerStatisticRecord(
            id=row["id"],
            player_id=row["player_id"],
            club=self.clubs.find_by_id(row["club_id"]),
            league=self.leagues.find_by_id(row["league_id"]),
            season=row["season"],
            **{f: row[f] for f in STAT_FIELDS},
        )

    def find_by_key(
        self,
        player_id: int,
        club_id: int,
        league_id: int,
        season: Optional[int],
    ) -> Optional[PlayerStatisticRecord]:
        row = self.db.fetchone(
            """
            SELECT * FROM player_statistics
            WHERE player_id = %s AND club_id = %s AND league_id = %s
              AND season IS NOT DISTINCT FROM %s
            """,
            (player_id, club_id, league_id, season),
        )
        return self._from_row(row) if row else None

    def find_by_player(self, player_id: int) -> list[PlayerStatisticRecord]:
        rows = self.db.fetchall(
            "SELECT * FROM player_statistics WHERE player_id = %s ORDER BY season DESC NULLS LAST, id",
            (player_id,),
        )
        return [self._from_row(row) for row in rows]

    def save(self, statistic: PlayerStatisticRecord) -> PlayerStatisticRecord:
        values: dict[str, Any] = {
            "player_id": statistic.player_id,
            "club_id": _ref_id(statistic.club),
            "league_id": _ref_id(statistic.league),
            "season": statistic.season,
        }
        values.update(statistic.scalar_values())
        stat_id = _upsert(self.db, "player_statistics", statistic.id, values)
        return statistic.model_copy(update={"id": stat_id}, deep=True)


class PostgresPlayerTransferRepository(PlayerTransferRepository):
    """PostgreSQL implementation for player transfers."""

    def __init__(self, db: "PostgresDB", clubs: PostgresClubRepository):
        self.db = db
        self.clubs = clubs

    def exists(
        self,
        player_id: int,
        transfer_date: date,
        club_from_id: Optional[int],
        club_to_id: Optional[int],
    ) -> bool:
        row = self.db.fetchone(
            """
            SELECT EXISTS(
                SELECT 1 FROM player_transfers
                WHERE player_id = %s AND transfer_date = %s
                  AND club_from_id IS NOT DISTINCT FROM %s
                  AND club_to_id IS NOT DISTINCT FROM %s
            ) AS exists
            """,
            (player_id, transfer_date, club_from_id, club_to_id),
        )
        return bool(row and row["exists"])

    def find_by_player(self, player_id: int) -> list[PlayerTransferRecord]:
        rows = self.db.fetchall(
            "SELECT * FROM player_transfers WHERE player_id = %s ORDER BY transfer_date DESC NULLS LAST",
            (player_id,),
        )
        return [
            PlayerTransferRecord(
                id=row["id"],
                player_id=row["player_id"],
                transfer_date=row["transfer_date"],
                transfer_type=row["transfer_type"],
                club_from=self.clubs.find_by_id(row["club_from_id"]),
                club_to=self.clubs.find_by_id(row["club_to_id"]),
            )
            for row in rows
        ]

    def save(self, transfer: PlayerTransferRecord) -> PlayerTransferRecord:
        transfer_id = _upsert(
            self.db,
            "player_transfers",
            transfer.id,
            {
                "player_id": transfer.player_id,
                "transfer_date": transfer.transfer_date,
                "transfer_type": transfer.transfer_type,
                "club_from_id": _ref_id(transfer.club_from),
                "club_to_id": _ref_id(transfer.club_to),
            },
        )
        return transfer.model_copy(update={"id": transfer_id}, deep=True)


class PostgresPlayerHistoryRepository(PlayerHistoryRepository):
    """PostgreSQL implementation for injuries, sidelined periods and trophies."""

    def __init__(self, db: "PostgresDB"):
        self.db = db

    def save_injury(self, injury: PlayerInjuryRecord) -> PlayerInjuryRecord:
        injury_id = _upsert(
            self.db,
            "player_injuries",
            injury.id,
            {
                "player_id": injury.player_id,
                "club_id": _ref_id(injury.club),
                "league_id": _ref_id(injury.league),
                "fixture_id": injury.fixture_id,
                "injury_type": injury.injury_type,
                "reason": injury.reason,
                "start_date": injury.start_date,
            },
        )
        return injury.model_copy(update={"id": injury_id}, deep=True)

    def save_sidelined(self, sidelined: PlayerSidelinedRecord) -> PlayerSidelinedRecord:
        sidelined_id = _upsert(
            self.db,
            "player_sidelined",
            sidelined.id,
            {
                "player_id": sidelined.player_id,
                "type": sidelined.type,
                "start_date": sidelined.start_date,
                "end_date": sidelined.end_date,
            },
        )
        return sidelined.model_copy(update={"id": sidelined_id}, deep=True)

    def save_trophy(self, trophy: PlayerTrophyRecord) -> PlayerTrophyRecord:
        trophy_id = _upsert(
            self.db,
            "player_trophies",
            trophy.id,
            {
                "player_id": trophy.player_id,
                "league_name": trophy.league_name,
                "country": trophy.country,
                "season": trophy.season,
                "place": trophy.place,
            },
        )
        return trophy.model_copy(update={"id": trophy_id}, deep=True)

    def count_for_player(self, player_id: int) -> dict[str, int]:
        row = self.db.fetchone(
            """
            SELECT
                (SELECT COUNT(*) FROM player_injuries WHERE player_id = %s) AS injuries,
                (SELECT COUNT(*) FROM player_sidelined WHERE player_id = %s) AS sidelined,
                (SELECT COUNT(*) FROM player_trophies WHERE player_id = %s) AS trophies
            """,
            (player_id, player_id, player_id),
        )
        return dict(row) if row else {"injuries": 0, "sidelined": 0, "trophies": 0}


def get_postgres_repositories(db: "PostgresDB") -> RepositorySet:
    """Repository set backed by ``db``."""
    countries = PostgresCountryRepository(db)
    leagues = PostgresLeagueRepository(db, countries)
    clubs = PostgresClubRepository(db, countries)
    return RepositorySet(
        countries=countries,
        leagues=leagues,
        clubs=clubs,
        players=PostgresPlayerRepository(db, clubs),
        statistics=PostgresPlayerStatisticRepository(db, clubs, leagues),
        transfers=PostgresPlayerTransferRepository(db, clubs),
        history=PostgresPlayerHistoryRepository(db),
    )
