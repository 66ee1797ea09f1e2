"""
Scheduler for U21 player population runs.

Starts a population run once a day (and optionally on startup) and on demand
from the admin API. At most one run is in flight at a time: a trigger that
arrives while a run is active is rejected, never queued.

Usage:
    scheduler = PopulationScheduler(settings, repos)
    await scheduler.start()                        # daily trigger loop
    await scheduler.trigger_manual_population()    # admin trigger
    await scheduler.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from ..core.http import ApiFootballHttpClient
from ..providers.api_football import ApiFootballProvider
from ..seeders.population import PopulationOrchestrator
from ..seeders.results import PopulationSummary

if TYPE_CHECKING:
    from ..core.config import Settings
    from ..repositories.base import RepositorySet

logger = logging.getLogger(__name__)


class PopulationAlreadyRunningError(Exception):
    """Raised when a manual trigger arrives while a run is in progress."""


class PopulationScheduler:
    """
    Owns the population background task and reports on its last run.

    Implements the orchestrator's completion callback: the running flag is
    cleared and the last-run status recorded when a run reports back.
    """

    def __init__(
        self,
        settings: "Settings",
        repos: "RepositorySet",
        http: Optional[ApiFootballHttpClient] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            settings: Pipeline settings (cron time, budget, leagues)
            repos: Repository set each run persists into
            http: API-Football client, built from settings if omitted
        """
        self.settings = settings
        self.repos = repos
        self.http = http or ApiFootballHttpClient.from_settings(settings)
        self.provider = ApiFootballProvider(self.http, page_delay=settings.page_delay)

        self.is_running = False
        self.last_run_status: Optional[str] = None
        self.last_run_time: Optional[datetime] = None
        self.last_summary: Optional[PopulationSummary] = None

        self._lock = asyncio.Lock()
        self._run_task: Optional[asyncio.Task] = None
        self._cron_task: Optional[asyncio.Task] = None

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def start(self) -> None:
        """Start the daily trigger loop (and a startup run when configured)."""
        if self._cron_task is not None and not self._cron_task.done():
            logger.warning("Population scheduler already started")
            return

        self._cron_task = asyncio.create_task(self._cron_loop())
        logger.info(
            "Population scheduler started, next run at %s", self.next_scheduled_run().isoformat()
        )

        if self.settings.populate_on_startup:
            logger.info("Triggering population on startup")
            await self.trigger_scheduled_population()

    async def shutdown(self) -> None:
        """Interrupt pending waits, cancel the background tasks and close the client."""
        logger.info("Shutting down population scheduler")
        self.http.interrupt()

        tasks = [t for t in (self._cron_task, self._run_task) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._cron_task = None
        self._run_task = None
        self.is_running = False
        await self.http.close()

    async def wait_for_run(self) -> Optional[PopulationSummary]:
        """Wait for the in-flight run (if any) and return the latest summary."""
        if self._run_task is not None:
            await asyncio.gather(self._run_task, return_exceptions=True)
        return self.last_summary

    # ==========================================================================
    # Triggers
    # ==========================================================================

    async def trigger_manual_population(self) -> None:
        """
        Start a run in the background.

        Raises:
            PopulationAlreadyRunningError: If a run is already in progress
        """
        if not await self._start_run("manual"):
            raise PopulationAlreadyRunningError("Data population is already running")

    async def trigger_scheduled_population(self) -> bool:
        """Start a run unless one is in progress; returns whether it started."""
        return await self._start_run("scheduled")

    async def _start_run(self, trigger: str) -> bool:
        async with self._lock:
            if self.is_running:
                logger.info("Data population already running, skipping %s trigger", trigger)
                return False
            self.is_running = True

        logger.info("Starting %s data population", trigger)
        self.http.reset_interrupt()
        self._run_task = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        orchestrator = PopulationOrchestrator(self.settings, self.provider, self.repos, callback=self)
        try:
            self.last_summary = await orchestrator.run()
        finally:
            # A cancelled run never reports back.
            self.is_running = False

    def on_population_complete(self, success: bool, message: str) -> None:
        self.is_running = False
        self.last_run_time = datetime.now()
        self.last_run_status = "Completed successfully" if success else f"Failed: {message}"
        if success:
            logger.info("Data population completed: %s", message)
        else:
            logger.error("Data population failed: %s", message)

    # ==========================================================================
    # Daily Trigger
    # ==========================================================================

    def next_scheduled_run(self, now: Optional[datetime] = None) -> datetime:
        """Next occurrence of the configured daily trigger time."""
        now = now or datetime.now()
        candidate = now.replace(
            hour=self.settings.population_cron_hour,
            minute=self.settings.population_cron_minute,
            second=0,
            microsecond=0,
        )
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    async def _cron_loop(self) -> None:
        while True:
            delay = (self.next_scheduled_run() - datetime.now()).total_seconds()
            logger.debug("Next scheduled population in %.0fs", delay)
            await asyncio.sleep(max(delay, 0))
            try:
                await self.trigger_scheduled_population()
            except Exception as e:
                logger.error("Scheduled population trigger failed: %s", e)

    # ==========================================================================
    # Status
    # ==========================================================================

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "last_run_status": self.last_run_status,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "next_scheduled_run": self.next_scheduled_run().isoformat(),
            "last_summary": self.last_summary.to_dict() if self.last_summary else None,
        }
