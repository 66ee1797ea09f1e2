"""
Admin router for population runs.

Endpoints:
- POST /scheduled-tasks/trigger-population - Start a run in the background
- GET /scheduled-tasks/status - Running flag and last-run status
- GET /scheduled-tasks/next-scheduled-run - Next daily trigger time
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from starlette.status import HTTP_202_ACCEPTED, HTTP_409_CONFLICT

from ..dependencies import SchedulerDependency
from ...services.scheduler import PopulationAlreadyRunningError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/scheduled-tasks/trigger-population", status_code=HTTP_202_ACCEPTED)
async def trigger_population(scheduler: SchedulerDependency) -> dict[str, Any]:
    """
    Start a population run without waiting for it.

    Returns 409 if a run is already in progress.
    """
    try:
        await scheduler.trigger_manual_population()
    except PopulationAlreadyRunningError as e:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail=str(e))

    logger.info("Manual data population triggered via admin API")
    return {"status": "accepted", "message": "Data population started in background"}


@router.get("/scheduled-tasks/status")
async def population_status(scheduler: SchedulerDependency) -> dict[str, Any]:
    return scheduler.get_status()


@router.get("/scheduled-tasks/next-scheduled-run")
async def next_scheduled_run(scheduler: SchedulerDependency) -> dict[str, Any]:
    return {"next_scheduled_run": scheduler.next_scheduled_run().isoformat()}
