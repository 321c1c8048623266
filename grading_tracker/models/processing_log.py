from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from .schedule_group import ScheduleGroup

"""Daily processing log entry (audit record).

One entry is written per processed schedule group, whether processing
succeeded or failed. The orchestrator fills the entry progressively as the
group moves through its states, so unlike most models here it is mutable.
"""

__all__ = [
    "ProcessingLogEntry",
    "NOTIFICATION_RESULT_MESSAGE",
    "GRADED_RESULT_MESSAGE",
    "DEFERRED_RESULT_MESSAGE",
    "FAILED_RESULT_MESSAGE",
    "FAILED_GRADE_STATUS",
    "NOT_PROCESSED_STATUS",
]

NOTIFICATION_RESULT_MESSAGE = (
    "Reporte sin calificación confirmada; notificación enviada al instructor"
)
GRADED_RESULT_MESSAGE = "Horarios actualizados como calificados"
DEFERRED_RESULT_MESSAGE = "Reporte con fecha calificable futura; seguimiento pospuesto"
FAILED_RESULT_MESSAGE = "No fue posible actualizar el estado"
FAILED_GRADE_STATUS = "Error en el procesamiento"
NOT_PROCESSED_STATUS = "No procesado"


@dataclass
class ProcessingLogEntry:
    fiche_id: int
    fiche_number: str | None
    instructor_id: int | None = None
    instructor_name: str | None = None
    instructor_email: str | None = None
    schedule_ids: list[int] = field(default_factory=list)
    schedule_count: int = 0
    graded: bool = False
    grade_status: str = NOT_PROCESSED_STATUS
    grade_date: datetime | None = None
    qualifiable: bool = True
    qualifiable_date: datetime | None = None
    report_file: str = ""
    result: str = ""
    error_message: str | None = None
    notification_sent_at: datetime | None = None
    processed_at: datetime | None = None

    @classmethod
    def for_group(cls, group: ScheduleGroup, contact_email: str | None = None) -> ProcessingLogEntry:
        """Initial entry for a group before any processing happened."""
        return cls(
            fiche_id=group.fiche_id,
            fiche_number=group.fiche_number,
            instructor_id=group.instructor.id,
            instructor_name=group.instructor.name,
            instructor_email=contact_email,
            schedule_ids=list(group.schedule_ids),
            schedule_count=group.schedule_count,
        )

    def mark_failed(self, error: BaseException) -> None:
        self.error_message = str(error)
        self.grade_status = FAILED_GRADE_STATUS
        self.result = FAILED_RESULT_MESSAGE

    def as_params(self) -> dict[str, Any]:
        """Column name -> value mapping for the INSERT statement."""
        return asdict(self)
