"""
Repository abstraction layer.

Provides database-agnostic interfaces for data persistence,
allowing the pipeline to run against PostgreSQL or in memory.

Usage:
    from talentradar_data.repositories import get_repositories

    repos = get_repositories(db)          # PostgreSQL
    repos = get_repositories()            # in-memory (tests, --dry-run)
    club = repos.clubs.find_by_external_id(529)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

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

__all__ = [
    "ClubRepository",
    "CountryRepository",
    "LeagueRepository",
    "PlayerHistoryRepository",
    "PlayerRepository",
    "PlayerStatisticRepository",
    "PlayerTransferRepository",
    "RepositorySet",
    "get_repositories",
]


def get_repositories(db: Optional["PostgresDB"] = None) -> RepositorySet:
    """
    Get repository set for the given database connection.

    Args:
        db: Database connection, or None for a fresh in-memory set

    Returns:
        RepositorySet with all repository implementations
    """
    if db is None:
        from .memory import get_memory_repositories

        return get_memory_repositories()

    from .postgres import get_postgres_repositories

    return get_postgres_repositories(db)
