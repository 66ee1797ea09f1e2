"""
API call budget for a population run.

The budget is owned by the population orchestrator, reset at the start of
every run, and handed to the HTTP client which records each request it
actually sends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LEAGUE_STOP_RATIO = 0.95


@dataclass
class ApiCallBudget:
    """Counts outbound API calls against a daily ceiling."""

    max_calls: int
    calls: int = 0

    def record(self) -> None:
        self.calls += 1
        if self.calls == self.max_calls:
            logger.warning("API call budget exhausted (%d/%d)", self.calls, self.max_calls)

    def reset(self) -> None:
        self.calls = 0

    @property
    def exhausted(self) -> bool:
        """No further player-level calls may be started."""
        return self.calls >= self.max_calls

    @property
    def near_limit(self) -> bool:
        """No further leagues may be started (95% of the ceiling)."""
        return self.calls >= self.max_calls * LEAGUE_STOP_RATIO

    @property
    def remaining(self) -> int:
        return max(0, self.max_calls - self.calls)

    def __str__(self) -> str:
        return f"{self.calls}/{self.max_calls}"
