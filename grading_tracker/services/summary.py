from __future__ import annotations

from ..models.processing_result import RunResult

"""SUMMARY line rendering for the end of a run.

Format:
    SUMMARY groups={processed}/{pending} graded={n} deferred={n} notified={n}
    failed={n} elapsed_sec={seconds}
"""

__all__ = ["render_summary_line", "format_seconds"]


def format_seconds(seconds: float) -> str:
    """Integers without a fraction; tiny values without scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: RunResult) -> str:
    """Render the SUMMARY line for a run.

    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)
    >>> render_summary_line(RunResult(5, 3, 1, 1, 1, 0, t, t, 2.0))
    'SUMMARY groups=3/5 graded=1 deferred=1 notified=1 failed=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY groups={result.processed_groups}/{result.pending_groups} "
        f"graded={result.graded} "
        f"deferred={result.deferred} "
        f"notified={result.notified} "
        f"failed={result.failed} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
