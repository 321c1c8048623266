from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..excel.text import normalize_text
from ..models.report import ClassifiedRow, RowClassification, RowState

"""Row classification for grading reports.

Each data row's status cell is normalized and tested against two keyword sets.
Pending keywords are checked first, so a status such as "Pendiente de
calificar" is never counted as graded.
"""

__all__ = [
    "PENDING_KEYWORDS",
    "GRADED_KEYWORDS",
    "classify_status",
    "classify_rows",
]

PENDING_KEYWORDS: tuple[str, ...] = ("sin calific", "pendiente")
GRADED_KEYWORDS: tuple[str, ...] = ("calific", "aprob")


def classify_status(status: Any) -> RowState:
    """Classify one raw status cell."""
    normalized = normalize_text(status)
    if not normalized:
        return RowState.IGNORED
    if any(k in normalized for k in PENDING_KEYWORDS):
        return RowState.PENDING
    if any(k in normalized for k in GRADED_KEYWORDS):
        return RowState.GRADED
    return RowState.IGNORED


def classify_rows(rows: Sequence[Sequence[Any]], status_index: int | None) -> RowClassification:
    """Partition data rows into graded and pending buckets.

    Args:
        rows: full report rows; row 0 is the header and is skipped
        status_index: resolved status column, or None when unresolved (every
            row is then ignored)

    Returns:
        RowClassification with graded / pending rows in report order
    """
    graded: list[ClassifiedRow] = []
    pending: list[ClassifiedRow] = []
    for row in rows[1:]:
        status = None
        if status_index is not None and status_index < len(row):
            status = row[status_index]
        state = classify_status(status)
        if state is RowState.PENDING:
            pending.append(ClassifiedRow(row=list(row), status=status, state=state))
        elif state is RowState.GRADED:
            graded.append(ClassifiedRow(row=list(row), status=status, state=state))
    return RowClassification(graded=tuple(graded), pending=tuple(pending))
