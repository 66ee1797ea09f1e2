"""
Dependency injection for API endpoints.

The scheduler is created by the application lifespan (or handed to
``create_app`` in tests) and stored on ``app.state``.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..services.scheduler import PopulationScheduler


def get_scheduler(request: Request) -> PopulationScheduler:
    """Dependency that provides the application's population scheduler."""
    return request.app.state.scheduler


SchedulerDependency = Annotated[PopulationScheduler, Depends(get_scheduler)]
