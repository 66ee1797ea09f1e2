"""
Population seeders.

The orchestrator walks the configured leagues and hands every parsed record
to the reconciler, which maps it onto the persisted rows.
"""

from .results import PopulationSummary, RecordResult, RunState, StepOutcome
from .reconciler import EntityReconciler, Resolution, ResolutionStrategy
from .club_resolution import ClubResolver
from .population import PopulationCallback, PopulationOrchestrator

__all__ = [
    "PopulationSummary",
    "RecordResult",
    "RunState",
    "StepOutcome",
    "EntityReconciler",
    "Resolution",
    "ResolutionStrategy",
    "ClubResolver",
    "PopulationCallback",
    "PopulationOrchestrator",
]
