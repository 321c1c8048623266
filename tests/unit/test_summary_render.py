from __future__ import annotations

from datetime import datetime, timezone

import pytest

from grading_tracker.models.processing_result import RunResult
from grading_tracker.services.summary import format_seconds, render_summary_line

T = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0"), (3.0, "3"), (1.23456, "1.235"), (0.0001234, "0.000123"), (2.5, "2.5")],
)
def test_format_seconds(seconds: float, expected: str) -> None:
    assert format_seconds(seconds) == expected


def test_render_summary_line() -> None:
    line = render_summary_line(RunResult(5, 3, 1, 1, 0, 1, T, T, 12.5))
    assert line == "SUMMARY groups=3/5 graded=1 deferred=1 notified=0 failed=1 elapsed_sec=12.5"


def test_render_summary_line_for_empty_run() -> None:
    line = render_summary_line(RunResult(0, 0, 0, 0, 0, 0, T, T, 0))
    assert line == "SUMMARY groups=0/0 graded=0 deferred=0 notified=0 failed=0 elapsed_sec=0"
