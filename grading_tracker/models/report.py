from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import cached_property
from typing import Any

from ..excel.text import normalize_text

"""Report inference domain models.

A ReportTable is the raw first sheet of a downloaded grading report. The
inference pipeline derives a ColumnResolution from its headers, a
RowClassification from its data rows and finally a GradingDecision, which is
the only value handed back to the orchestration layer.
"""

__all__ = [
    "ReportTable",
    "ColumnRole",
    "ColumnResolution",
    "RowState",
    "ClassifiedRow",
    "RowClassification",
    "GradingDecision",
    "EMPTY_REPORT_LABEL",
    "GRADED_LABEL",
    "PENDING_LABEL",
    "NO_INFORMATION_LABEL",
]

EMPTY_REPORT_LABEL = "Reporte sin información"
GRADED_LABEL = "Calificado"
PENDING_LABEL = "Pendiente de Calificación"
NO_INFORMATION_LABEL = "Sin información de calificación"


@dataclass(frozen=True)
class ReportTable:
    """Rows of the first report sheet; row 0 is the header row."""
    rows: list[list[Any]]
    sheet_name: str = ""

    @cached_property
    def headers(self) -> list[str]:
        """Normalized header row, index-aligned with every data row."""
        if not self.rows:
            return []
        return [normalize_text(h) for h in self.rows[0]]

    @property
    def data_rows(self) -> list[list[Any]]:
        return self.rows[1:]

    def __len__(self) -> int:
        return len(self.rows)


class ColumnRole(Enum):
    """Semantic purpose of a resolved report column."""
    STATUS = "status"
    GRADE_DATE = "grade_date"
    QUALIFIABLE_DATE = "qualifiable_date"


@dataclass(frozen=True)
class ColumnResolution:
    """Resolved column indexes for one report. None means not found."""
    status_index: int | None = None
    grade_date_index: int | None = None
    qualifiable_date_indexes: tuple[int, ...] = ()

    def indexes_for(self, role: ColumnRole) -> tuple[int, ...]:
        if role is ColumnRole.STATUS:
            return () if self.status_index is None else (self.status_index,)
        if role is ColumnRole.GRADE_DATE:
            return () if self.grade_date_index is None else (self.grade_date_index,)
        return self.qualifiable_date_indexes


class RowState(Enum):
    GRADED = "graded"
    PENDING = "pending"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ClassifiedRow:
    row: list[Any]
    status: Any  # raw status cell as read from the sheet
    state: RowState


@dataclass(frozen=True)
class RowClassification:
    """Graded / pending buckets. Ignored rows are dropped."""
    graded: tuple[ClassifiedRow, ...] = field(default_factory=tuple)
    pending: tuple[ClassifiedRow, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GradingDecision:
    """Terminal output of report inference.

    graded is only True with at least one graded row and no pending rows.
    qualifiable_date is only acted upon when graded is False.
    """
    graded: bool
    status_label: str
    grade_date: datetime | None = None
    qualifiable_date: datetime | None = None
