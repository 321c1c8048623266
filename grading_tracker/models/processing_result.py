from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Run result models for the daily grading check.

GroupState mirrors the per-group state machine driven by the orchestrator:

    START -> REPORT_DOWNLOADED -> DECIDED
          -> (GRADED_APPLIED | FUTURE_DEFERRED | NOTIFICATION_SENT) -> LOGGED
    any state -> FAILED -> LOGGED
"""


class GroupState(Enum):
    START = "start"
    REPORT_DOWNLOADED = "report_downloaded"
    DECIDED = "decided"
    GRADED_APPLIED = "graded_applied"
    FUTURE_DEFERRED = "future_deferred"
    NOTIFICATION_SENT = "notification_sent"
    FAILED = "failed"
    LOGGED = "logged"


TERMINAL_STATES = frozenset(
    {
        GroupState.GRADED_APPLIED,
        GroupState.FUTURE_DEFERRED,
        GroupState.NOTIFICATION_SENT,
        GroupState.FAILED,
    }
)


@dataclass(frozen=True)
class GroupStat:
    """Per-group processing outcome."""
    fiche_number: str | None
    outcome: GroupState  # terminal state reached before LOGGED
    elapsed_seconds: float
    failed_from: GroupState | None = None  # last good state when outcome is FAILED
    error: str | None = None
    logged: bool = True  # audit record persisted


@dataclass(frozen=True)
class RunResult:
    """Aggregated results for one run, feeding the SUMMARY line."""
    pending_groups: int  # groups found pending, before the batch cap
    processed_groups: int
    graded: int
    deferred: int
    notified: int
    failed: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    group_stats: list[GroupStat] | None = None

    @property
    def deferred_to_next_run(self) -> int:
        return self.pending_groups - self.processed_groups
