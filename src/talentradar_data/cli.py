"""
Command-line interface for the TalentRadar population pipeline.

Usage:
    talentradar-data init-db                 # Apply SQL migrations
    talentradar-data populate                # Run one population now
    talentradar-data populate --dry-run      # Same, persisting in memory only
    talentradar-data schedule                # Daily population loop
    talentradar-data status                  # Schema version and table counts
    talentradar-data serve --port 8000       # Admin API with the daily loop
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Optional

import click

from .core.config import Settings, get_settings
from .pg_connection import close_db

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_db():
    """Get the PostgreSQL connection, exiting when no database is configured."""
    from .pg_connection import get_db as _get_db

    try:
        return _get_db()
    except ValueError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--log-level", default=None, help="Log level (default: LOG_LEVEL setting)")
def cli(log_level: Optional[str]):
    """TalentRadar U21 population CLI."""
    configure_logging(log_level or get_settings().log_level)


@cli.command("init-db")
@click.option("--force", is_flag=True, help="Re-apply migrations that were already run")
def init_db(force: bool):
    """Initialize the database schema."""
    from .schema import get_schema_version, init_database, run_migrations

    db = get_db()
    try:
        applied = run_migrations(db, force=True) if force else init_database(db)
        click.echo(f"Applied {applied} migration(s), schema version {get_schema_version(db)}")
    finally:
        close_db()


@cli.command()
@click.option("--dry-run", is_flag=True, help="Persist into memory instead of PostgreSQL")
@click.option("--league-id", "league_ids", multiple=True, type=int, help="League to scan (repeatable)")
@click.option("--max-calls", type=int, default=None, help="Override the API call budget")
def populate(dry_run: bool, league_ids: tuple[int, ...], max_calls: Optional[int]):
    """Run one population now and print its summary."""
    settings = get_settings()
    overrides = {}
    if league_ids:
        overrides["population_league_ids"] = list(league_ids)
    if max_calls is not None:
        overrides["max_api_calls"] = max_calls
    if overrides:
        settings = settings.model_copy(update=overrides)

    if not settings.api_football_key:
        click.echo("ERROR: API_FOOTBALL_KEY environment variable not set", err=True)
        sys.exit(1)

    summary = asyncio.run(_populate(settings, dry_run))
    click.echo(json.dumps(summary, indent=2))
    if not summary["success"]:
        sys.exit(1)


async def _populate(settings: Settings, dry_run: bool) -> dict:
    from .core.http import ApiFootballHttpClient
    from .providers import ApiFootballProvider
    from .repositories import get_repositories
    from .seeders import PopulationOrchestrator

    db = None if dry_run else get_db()
    if dry_run:
        logger.info("Dry run: records are kept in memory only")

    try:
        async with ApiFootballHttpClient.from_settings(settings) as http:
            provider = ApiFootballProvider(http, page_delay=settings.page_delay)
            orchestrator = PopulationOrchestrator(settings, provider, get_repositories(db))
            summary = await orchestrator.run()
        return summary.to_dict()
    finally:
        if db is not None:
            close_db()


@cli.command()
def schedule():
    """Run the daily population loop until interrupted."""
    try:
        asyncio.run(_schedule(get_settings()))
    except KeyboardInterrupt:
        click.echo("Scheduler stopped")


async def _schedule(settings: Settings) -> None:
    from .repositories import get_repositories
    from .services.scheduler import PopulationScheduler

    db = get_db()
    scheduler = PopulationScheduler(settings, get_repositories(db))
    await scheduler.start()
    click.echo(f"Next population run at {scheduler.next_scheduled_run().isoformat()}")
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.shutdown()
        close_db()


@cli.command()
def status():
    """Show schema version and row counts."""
    from .schema import get_schema_version, get_table_counts

    db = get_db()
    try:
        click.echo(f"Schema version: {get_schema_version(db)}")
        for table, count in get_table_counts(db).items():
            click.echo(f"  {table:<20} {count:>8}")
    finally:
        close_db()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
def serve(host: str, port: int):
    """Serve the admin API (includes the daily population loop)."""
    import uvicorn

    uvicorn.run("talentradar_data.api.main:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":
    cli()
