"""
In-memory repository implementations.

Backs the test-suite and ``populate --dry-run``. Rows live in dicts keyed by
id and every read or write goes through a deep copy, matching the
hand-back-copies contract of the PostgreSQL implementation.
"""

from __future__ import annotations

import itertools
from datetime import date
from typing import Generic, Iterator, Optional, TypeVar

from pydantic import BaseModel

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

M = TypeVar("M", bound=BaseModel)


def _same_name(a: Optional[str], b: Optional[str]) -> bool:
    return a is not None and b is not None and a.strip().lower() == b.strip().lower()


class _Table(Generic[M]):
    """Id-keyed row store with auto-increment ids."""

    def __init__(self) -> None:
        self._rows: dict[int, M] = {}
        self._ids = itertools.count(1)

    def insert_or_update(self, record: M) -> M:
        stored = record.model_copy(deep=True)
        if getattr(stored, "id", None) is None:
            stored.id = next(self._ids)
        self._rows[stored.id] = stored
        return stored.model_copy(deep=True)

    def rows(self) -> Iterator[M]:
        for row in self._rows.values():
            yield row.model_copy(deep=True)

    def first(self, predicate) -> Optional[M]:
        for row in self._rows.values():
            if predicate(row):
                return row.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryCountryRepository(CountryRepository):
    def __init__(self) -> None:
        self.table: _Table[CountryRecord] = _Table()

    def find_by_name_ignore_case(self, name: str) -> Optional[CountryRecord]:
        return self.table.first(lambda c: _same_name(c.name, name))

    def save(self, country: CountryRecord) -> CountryRecord:
        return self.table.insert_or_update(country)


class InMemoryLeagueRepository(LeagueRepository):
    def __init__(self) -> None:
        self.table: _Table[LeagueRecord] = _Table()

    def find_by_external_id(self, external_id: int) -> Optional[LeagueRecord]:
        return self.table.first(lambda l: l.external_id == external_id)

    def find_by_name_ignore_case(self, name: str) -> Optional[LeagueRecord]:
        return self.table.first(lambda l: _same_name(l.name, name))

    def find_by_name_containing(self, fragment: str) -> list[LeagueRecord]:
        needle = fragment.strip().lower()
        matches = [l for l in self.table.rows() if needle in l.name.lower()]
        return sorted(matches, key=lambda l: l.season or 0, reverse=True)

    def save(self, league: LeagueRecord) -> LeagueRecord:
        return self.table.insert_or_update(league)


class InMemoryClubRepository(ClubRepository):
    def __init__(self) -> None:
        self.table: _Table[ClubRecord] = _Table()

    def find_by_external_id(self, external_id: int) -> Optional[ClubRecord]:
        return self.table.first(lambda c: c.external_id == external_id)

    def find_by_name_ignore_case(self, name: str) -> Optional[ClubRecord]:
        return self.table.first(lambda c: _same_name(c.name, name))

    def find_by_league(self, league_id: int) -> list[ClubRecord]:
        return [c for c in self.table.rows() if c.league_id == league_id]

    def save(self, club: ClubRecord) -> ClubRecord:
        return self.table.insert_or_update(club)


class InMemoryPlayerRepository(PlayerRepository):
    def __init__(self) -> None:
        self.table: _Table[PlayerRecord] = _Table()

    def find_by_external_id(self, external_id: int) -> Optional[PlayerRecord]:
        return self.table.first(lambda p: p.external_id == external_id)

    def find_by_name_ignore_case(self, name: str) -> Optional[PlayerRecord]:
        return self.table.first(lambda p: _same_name(p.name, name))

    def save(self, player: PlayerRecord) -> PlayerRecord:
        # Statistics are stored through PlayerStatisticRepository
        return self.table.insert_or_update(player.model_copy(update={"statistics": []}))

    def count(self) -> int:
        return len(self.table)


class InMemoryPlayerStatisticRepository(PlayerStatisticRepository):
    def __init__(self) -> None:
        self.table: _Table[PlayerStatisticRecord] = _Table()

    def find_by_key(
        self,
        player_id: int,
        club_id: int,
        league_id: int,
        season: Optional[int],
    ) -> Optional[PlayerStatisticRecord]:
        return self.table.first(
            lambda s: s.player_id == player_id
            and s.club is not None
            and s.club.id == club_id
            and s.league is not None
            and s.league.id == league_id
            and s.season == season
        )

    def find_by_player(self, player_id: int) -> list[PlayerStatisticRecord]:
        stats = [s for s in self.table.rows() if s.player_id == player_id]
        return sorted(stats, key=lambda s: s.season or 0, reverse=True)

    def save(self, statistic: PlayerStatisticRecord) -> PlayerStatisticRecord:
        return self.table.insert_or_update(statistic)


class InMemoryPlayerTransferRepository(PlayerTransferRepository):
    def __init__(self) -> None:
        self.table: _Table[PlayerTransferRecord] = _Table()

    def exists(
        self,
        player_id: int,
        transfer_date: date,
        club_from_id: Optional[int],
        club_to_id: Optional[int],
    ) -> bool:
        def matches(t: PlayerTransferRecord) -> bool:
            return (
                t.player_id == player_id
                and t.transfer_date == transfer_date
                and (t.club_from.id if t.club_from else None) == club_from_id
                and (t.club_to.id if t.club_to else None) == club_to_id
            )

        return self.table.first(matches) is not None

    def find_by_player(self, player_id: int) -> list[PlayerTransferRecord]:
        return [t for t in self.table.rows() if t.player_id == player_id]

    def save(self, transfer: PlayerTransferRecord) -> PlayerTransferRecord:
        return self.table.insert_or_update(transfer)


class InMemoryPlayerHistoryRepository(PlayerHistoryRepository):
    def __init__(self) -> None:
        self.injuries: _Table[PlayerInjuryRecord] = _Table()
        self.sidelined: _Table[PlayerSidelinedRecord] = _Table()
        self.trophies: _Table[PlayerTrophyRecord] = _Table()

    def save_injury(self, injury: PlayerInjuryRecord) -> PlayerInjuryRecord:
        return self.injuries.insert_or_update(injury)

    def save_sidelined(self, sidelined: PlayerSidelinedRecord) -> PlayerSidelinedRecord:
        return self.sidelined.insert_or_update(sidelined)

    def save_trophy(self, trophy: PlayerTrophyRecord) -> PlayerTrophyRecord:
        return self.trophies.insert_or_update(trophy)

    def count_for_player(self, player_id: int) -> dict[str, int]:
        return {
            "injuries": sum(1 for r in self.injuries.rows() if r.player_id == player_id),
            "sidelined": sum(1 for r in self.sidelined.rows() if r.player_id == player_id),
            "trophies": sum(1 for r in self.trophies.rows() if r.player_id == player_id),
        }


def get_memory_repositories() -> RepositorySet:
    """Fresh, empty in-memory repository set."""
    return RepositorySet(
        countries=InMemoryCountryRepository(),
        leagues=InMemoryLeagueRepository(),
        clubs=InMemoryClubRepository(),
        players=InMemoryPlayerRepository(),
        statistics=InMemoryPlayerStatisticRepository(),
        transfers=InMemoryPlayerTransferRepository(),
        history=InMemoryPlayerHistoryRepository(),
    )
