from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from ..excel.headers import resolve_columns
from ..excel.reader import EmptyReportError, read_report_table
from ..excel.temporal import parse_temporal
from ..models.report import (
    EMPTY_REPORT_LABEL,
    GRADED_LABEL,
    NO_INFORMATION_LABEL,
    PENDING_LABEL,
    ColumnRole,
    GradingDecision,
    ReportTable,
)
from .classifier import classify_rows

"""Grading decision engine.

Combines header resolution, row classification and date parsing into a single
GradingDecision per report. The verdict is all-or-nothing: one pending row
vetoes a graded verdict because a ficha's schedules are graded as a unit.
"""

__all__ = [
    "EmptyReportError",
    "decide",
    "analyze_report",
    "latest_date",
]

logger = logging.getLogger(__name__)


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def latest_date(values: Iterable[Any]) -> datetime | None:
    """Return the maximum parseable datetime among raw cell values.

    Unparseable cells are skipped.
    """
    latest: datetime | None = None
    for value in values:
        parsed = parse_temporal(value)
        if parsed is not None and (latest is None or parsed > latest):
            latest = parsed
    return latest


def _latest_in(rows: Sequence[Sequence[Any]], indexes: tuple[int, ...]) -> datetime | None:
    if not indexes:
        return None
    return latest_date(_cell(row, i) for row in rows for i in indexes)


def decide(table: ReportTable) -> GradingDecision:
    """Derive the grading decision for one report table.

    A table without data rows (empty sheet, or a bare header row) yields the
    "Reporte sin información" decision.
    """
    if not table.data_rows:
        return GradingDecision(
            graded=False,
            status_label=EMPTY_REPORT_LABEL,
            grade_date=None,
            qualifiable_date=None,
        )

    columns = resolve_columns(table.headers)
    classification = classify_rows(table.rows, columns.status_index)
    graded = bool(classification.graded) and not classification.pending

    grade_date = None
    if graded:
        grade_date = _latest_in(
            [c.row for c in classification.graded],
            columns.indexes_for(ColumnRole.GRADE_DATE),
        )

    # every data row counts here, graded or not
    qualifiable_date = _latest_in(
        table.data_rows, columns.indexes_for(ColumnRole.QUALIFIABLE_DATE)
    )

    if graded:
        label = GRADED_LABEL
    elif classification.pending:
        label = PENDING_LABEL
    else:
        label = NO_INFORMATION_LABEL

    logger.debug(
        "decision sheet=%s status_col=%s date_col=%s qualifiable_cols=%s graded_rows=%d pending_rows=%d graded=%s",
        table.sheet_name,
        columns.status_index,
        columns.grade_date_index,
        list(columns.qualifiable_date_indexes),
        len(classification.graded),
        len(classification.pending),
        graded,
    )
    return GradingDecision(
        graded=graded,
        status_label=label,
        grade_date=grade_date,
        qualifiable_date=qualifiable_date,
    )


def analyze_report(path: Path) -> GradingDecision:
    """Read a downloaded report and decide its grading state.

    Raises:
        EmptyReportError: the workbook contains no sheet
    """
    return decide(read_report_table(path))
