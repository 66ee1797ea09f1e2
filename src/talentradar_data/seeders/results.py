"""
Result types shared by the reconciler and the population orchestrator.

Units of work report how the run should proceed through StepOutcome, and
every persisted (or rejected) record is collected as a RecordResult into
the run's PopulationSummary.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class StepOutcome(str, Enum):
    """What the caller of a unit of work should do next."""
    CONTINUE = "continue"
    SOFT_FAIL = "soft_fail"    # this unit failed; carry on with the next one
    HALT_RUN = "halt_run"      # daily quota reached; stop the whole run


class RunState(str, Enum):
    """Population run states."""
    IDLE = "idle"
    FETCHING_LEAGUES = "fetching_leagues"
    PROCESSING_LEAGUE = "processing_league"
    DONE = "done"
    HALTED_ON_QUOTA = "halted_on_quota"
    FAILED = "failed"


@dataclass
class RecordResult:
    """Outcome of persisting one record."""
    kind: str                  # "statistic", "transfer", "injury", ...
    key: str
    ok: bool = True
    skipped: bool = False      # already stored, nothing written
    reason: Optional[str] = None

    @classmethod
    def failed(cls, kind: str, key: str, reason: str) -> "RecordResult":
        return cls(kind=kind, key=key, ok=False, reason=reason)

    @classmethod
    def unchanged(cls, kind: str, key: str, reason: str) -> "RecordResult":
        return cls(kind=kind, key=key, skipped=True, reason=reason)


@dataclass
class PopulationSummary:
    """Result of a population run."""
    run_started: datetime = field(default_factory=datetime.now)
    run_completed: Optional[datetime] = None
    state: RunState = RunState.IDLE
    success: bool = False
    message: str = ""
    api_calls: int = 0
    max_api_calls: int = 0
    leagues_processed: int = 0
    players_processed: int = 0
    players_skipped: int = 0
    players_failed: int = 0
    budget_exhausted: bool = False
    records: list[RecordResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def add(self, result: RecordResult) -> None:
        self.records.append(result)

    def extend(self, results: list[RecordResult]) -> None:
        self.records.extend(results)

    def record_counts(self) -> dict[str, dict[str, int]]:
        """Per-kind counts of saved, skipped and failed records."""
        saved = Counter(r.kind for r in self.records if r.ok and not r.skipped)
        skipped = Counter(r.kind for r in self.records if r.ok and r.skipped)
        failed = Counter(r.kind for r in self.records if not r.ok)
        kinds = sorted(set(saved) | set(skipped) | set(failed))
        return {k: {"saved": saved[k], "skipped": skipped[k], "failed": failed[k]} for k in kinds}

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_started": self.run_started.isoformat(),
            "run_completed": self.run_completed.isoformat() if self.run_completed else None,
            "state": self.state.value,
            "success": self.success,
            "message": self.message,
            "api_calls": self.api_calls,
            "max_api_calls": self.max_api_calls,
            "leagues_processed": self.leagues_processed,
            "players_processed": self.players_processed,
            "players_skipped": self.players_skipped,
            "players_failed": self.players_failed,
            "budget_exhausted": self.budget_exhausted,
            "records": self.record_counts(),
            "errors": self.errors,
        }
