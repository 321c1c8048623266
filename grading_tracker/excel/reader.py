from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.report import ReportTable
from .text import is_missing

"""Grading report reader.

The portal exports the grading-status report as a single-sheet workbook. Only
the first sheet is read, without a header row applied, so that row 0 stays the
raw header row and header resolution can work on it. Missing cells become
None so downstream code never sees pandas NaN/NaT sentinels.
"""

__all__ = [
    "EmptyReportError",
    "read_report_table",
    "dataframe_to_table",
]


class EmptyReportError(Exception):
    """Raised when a downloaded report contains no sheet to process."""


def _clean_cell(value: Any) -> Any:
    if is_missing(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def dataframe_to_table(df: pd.DataFrame, sheet_name: str = "") -> ReportTable:
    """Convert a header-less raw DataFrame into a ReportTable.

    Fully empty rows are dropped; trailing empty rows are common in exported
    reports and carry no status.
    """
    rows: list[list[Any]] = []
    for _, raw in df.iterrows():
        if raw.isna().all():
            continue
        rows.append([_clean_cell(v) for v in raw.tolist()])
    return ReportTable(rows=rows, sheet_name=sheet_name)


def read_report_table(path: Path) -> ReportTable:
    """Read the first sheet of a report workbook.

    Parameters
    ----------
    path: downloaded report file (.xlsx / .xls)

    Raises
    ------
    EmptyReportError: the workbook has no sheets
    """
    with pd.ExcelFile(path) as xls:
        if not xls.sheet_names:
            raise EmptyReportError(f"report has no sheets to process: {Path(path).name}")
        sheet_name = str(xls.sheet_names[0])
        df = xls.parse(xls.sheet_names[0], header=None)
    return dataframe_to_table(df, sheet_name=sheet_name)
