"""
TalentRadar Data Module

Populates the scouting database with U21 football players from API-Football:
profiles, per-season statistics, transfers, injuries, sidelined periods and
trophies.

Key Features:
- Rate-limited, retrying API-Football client with a daily call budget
- Idempotent re-runs (players already stored are skipped)
- Club reconciliation with sentinel clubs for unresolvable references
- Daily scheduled run plus a manual admin trigger

Usage:
    from talentradar_data import get_settings, get_db, get_repositories

    db = get_db()
    repos = get_repositories(db)
    print(repos.players.count())
"""

from .core.config import Settings, get_settings
from .pg_connection import PostgresDB, get_db, close_db
from .schema import init_database, run_migrations
from .repositories import RepositorySet, get_repositories

__version__ = "1.0.0"

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Connection
    "PostgresDB",
    "get_db",
    "close_db",
    # Schema
    "init_database",
    "run_migrations",
    # Repositories
    "RepositorySet",
    "get_repositories",
]
