"""
Base repository protocols.

Defines abstract interfaces for persisting the pipeline's records, enabling
database-agnostic reconciliation. Implementations must hand back copies:
a record returned by ``save`` has its ``id`` set, and mutating it does not
change the stored row until it is saved again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

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


class CountryRepository(ABC):
    """Abstract interface for country data access."""

    @abstractmethod
    def find_by_name_ignore_case(self, name: str) -> Optional[CountryRecord]:
        ...

    @abstractmethod
    def save(self, country: CountryRecord) -> CountryRecord:
        """
        Insert or update a country.

        Returns:
            The stored country, with ``id`` set
        """
        ...


class LeagueRepository(ABC):
    """Abstract interface for league data access."""

    @abstractmethod
    def find_by_external_id(self, external_id: int) -> Optional[LeagueRecord]:
        ...

    @abstractmethod
    def find_by_name_ignore_case(self, name: str) -> Optional[LeagueRecord]:
        ...

    @abstractmethod
    def find_by_name_containing(self, fragment: str) -> list[LeagueRecord]:
        """
        Find leagues whose name contains ``fragment``, ignoring case.

        Args:
            fragment: Substring to look for

        Returns:
            Matching leagues, most recent season first
        """
        ...

    @abstractmethod
    def save(self, league: LeagueRecord) -> LeagueRecord:
        ...

    def save_and_flush(self, league: LeagueRecord) -> LeagueRecord:
        """Save and make the row visible to other connections immediately."""
        return self.save(league)


class ClubRepository(ABC):
    """Abstract interface for club data access."""

    @abstractmethod
    def find_by_external_id(self, external_id: int) -> Optional[ClubRecord]:
        ...

    @abstractmethod
    def find_by_name_ignore_case(self, name: str) -> Optional[ClubRecord]:
        """Case-insensitive exact match on the trimmed name."""
        ...

    @abstractmethod
    def find_by_league(self, league_id: int) -> list[ClubRecord]:
        """
        Find clubs listed under a persisted league.

        Args:
            league_id: Persisted league id (not the API-Football id)

        Returns:
            Clubs in insertion order
        """
        ...

    @abstractmethod
    def save(self, club: ClubRecord) -> ClubRecord:
        ...

    def save_and_flush(self, club: ClubRecord) -> ClubRecord:
        """Save and make the row visible to other connections immediately."""
        return self.save(club)


class PlayerRepository(ABC):
    """Abstract interface for player data access."""

    @abstractmethod
    def find_by_external_id(self, external_id: int) -> Optional[PlayerRecord]:
        """
        Find a player by API-Football id.

        The returned record carries ``current_club`` but not ``statistics``.
        """
        ...

    def exists_by_external_id(self, external_id: int) -> bool:
        return self.find_by_external_id(external_id) is not None

    @abstractmethod
    def find_by_name_ignore_case(self, name: str) -> Optional[PlayerRecord]:
        ...

    @abstractmethod
    def save(self, player: PlayerRecord) -> PlayerRecord:
        ...

    def save_and_flush(self, player: PlayerRecord) -> PlayerRecord:
        return self.save(player)

    @abstractmethod
    def count(self) -> int:
        ...


class PlayerStatisticRepository(ABC):
    """
    Abstract interface for per-season player statistics.

    Rows are unique per (player, club, league, season).
    """

    @abstractmethod
    def find_by_key(
        self,
        player_id: int,
        club_id: int,
        league_id: int,
        season: Optional[int],
    ) -> Optional[PlayerStatisticRecord]:
        ...

    @abstractmethod
    def find_by_player(self, player_id: int) -> list[PlayerStatisticRecord]:
        """All statistics of a player, most recent season first."""
        ...

    @abstractmethod
    def save(self, statistic: PlayerStatisticRecord) -> PlayerStatisticRecord:
        """Insert, or update the row with the same id."""
        ...


class PlayerTransferRepository(ABC):
    """Abstract interface for player transfers."""

    @abstractmethod
    def exists(
        self,
        player_id: int,
        transfer_date: date,
        club_from_id: Optional[int],
        club_to_id: Optional[int],
    ) -> bool:
        ...

    @abstractmethod
    def find_by_player(self, player_id: int) -> list[PlayerTransferRecord]:
        ...

    @abstractmethod
    def save(self, transfer: PlayerTransferRecord) -> PlayerTransferRecord:
        ...


class PlayerHistoryRepository(ABC):
    """
    Abstract interface for append-only player history.

    Injuries, sidelined periods and trophies are never deduplicated; a
    player is only processed once.
    """

    @abstractmethod
    def save_injury(self, injury: PlayerInjuryRecord) -> PlayerInjuryRecord:
        ...

    @abstractmethod
    def save_sidelined(self, sidelined: PlayerSidelinedRecord) -> PlayerSidelinedRecord:
        ...

    @abstractmethod
    def save_trophy(self, trophy: PlayerTrophyRecord) -> PlayerTrophyRecord:
        ...

    @abstractmethod
    def count_for_player(self, player_id: int) -> dict[str, int]:
        """Row counts per history kind: injuries, sidelined, trophies."""
        ...


@dataclass
class RepositorySet:
    """
    Collection of all repositories.

    Provides convenient access to all repository implementations.
    """
    countries: CountryRepository
    leagues: LeagueRepository
    clubs: ClubRepository
    players: PlayerRepository
    statistics: PlayerStatisticRepository
    transfers: PlayerTransferRepository
    history: PlayerHistoryRepository
