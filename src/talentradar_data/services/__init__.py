"""
Services module for TalentRadar Data.

- scheduler: daily and on-demand population runs (single run at a time)
"""

from .scheduler import PopulationAlreadyRunningError, PopulationScheduler

__all__ = ["PopulationAlreadyRunningError", "PopulationScheduler"]
