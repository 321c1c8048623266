from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import psycopg2

from ..errors import PersistenceError
from ..excel.temporal import floor_to_midnight
from ..models.processing_log import NOTIFICATION_RESULT_MESSAGE, ProcessingLogEntry
from ..models.report import GradingDecision
from ..models.schedule_group import ScheduleGroup

"""Schedule persistence over a psycopg2 cursor.

The repository never opens transactions on its own: the orchestrator calls
begin()/commit()/rollback() around each schedule group. Every psycopg2 error
is re-raised as PersistenceError with the original chained.
"""

__all__ = [
    "PROCESS_NAME",
    "ScheduleRepository",
]

logger = logging.getLogger(__name__)

PROCESS_NAME = "processSchedules"

# Not graded, window closed, and either qualifiable (true/NULL) or deferred
# with a fecha_calificable that has arrived.
PENDING_GROUPS_SQL = """
SELECT s.fiche_id,
       f.number AS fiche_number,
       array_agg(s.id ORDER BY s.id) AS schedule_ids,
       count(*) AS schedule_count,
       i.id AS instructor_id,
       i.name AS instructor_name,
       i.email AS instructor_email,
       i.email_personal AS instructor_email_personal
FROM schedules s
JOIN fiches f ON f.id = s.fiche_id
LEFT JOIN instructors i ON i.id = f.owner_id
WHERE s.fend < %(cutoff)s
  AND s.calificado IS NOT TRUE
  AND (
        s.calificable IS NOT FALSE
        OR (s.fecha_calificable IS NOT NULL AND s.fecha_calificable <= CURRENT_DATE)
  )
GROUP BY s.fiche_id, f.number, i.id, i.name, i.email, i.email_personal
ORDER BY s.fiche_id
"""

MARK_GRADED_SQL = """
UPDATE schedules
SET calificado = TRUE,
    calificable = TRUE,
    fecha_calificacion = %(grade_date)s,
    estado_calificacion = %(status)s,
    calificado_por_proceso = %(process)s,
    fecha_calificable = NULL,
    updated_at = now()
WHERE id = ANY(%(ids)s)
"""

MARK_PENDING_SQL = """
UPDATE schedules
SET calificado = FALSE,
    calificable = %(qualifiable)s,
    fecha_calificacion = %(grade_date)s,
    estado_calificacion = %(status)s,
    calificado_por_proceso = %(process)s,
    fecha_calificable = %(qualifiable_date)s,
    updated_at = now()
WHERE id = ANY(%(ids)s)
"""

LOG_COLUMNS = (
    "fiche_id",
    "fiche_number",
    "instructor_id",
    "instructor_name",
    "instructor_email",
    "schedule_ids",
    "schedule_count",
    "graded",
    "grade_status",
    "grade_date",
    "qualifiable",
    "qualifiable_date",
    "report_file",
    "result",
    "error_message",
    "notification_sent_at",
)

INSERT_LOG_SQL = (
    "INSERT INTO daily_processing_logs ("
    + ", ".join(LOG_COLUMNS)
    + ", processed_at) VALUES ("
    + ", ".join(f"%({c})s" for c in LOG_COLUMNS)
    + ", coalesce(%(processed_at)s, now())) RETURNING id"
)

NOTIFICATION_LOG_FIELDS = (
    "fiche_number",
    "instructor_name",
    "instructor_email",
    "grade_status",
    "grade_date",
    "report_file",
    "notification_sent_at",
    "processed_at",
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ScheduleRepository:
    """Persistence collaborator used by the orchestrator and the HTTP query."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    def _execute(self, sql: str, params: Any = None, *, what: str) -> None:
        try:
            self._cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise PersistenceError(f"{what} failed: {e}") from e

    def _fetch_dicts(self, *, what: str) -> list[dict[str, Any]]:
        try:
            names = [d[0] for d in self._cursor.description]
            return [dict(zip(names, row)) for row in self._cursor.fetchall()]
        except psycopg2.Error as e:
            raise PersistenceError(f"{what} failed: {e}") from e

    # -- transaction boundaries -------------------------------------------

    def begin(self) -> None:
        self._execute("BEGIN", what="begin")

    def commit(self) -> None:
        self._execute("COMMIT", what="commit")

    def rollback(self) -> None:
        self._execute("ROLLBACK", what="rollback")

    # -- schedules ----------------------------------------------------------

    def get_pending_schedule_groups(self, cutoff: datetime) -> list[ScheduleGroup]:
        """Schedule groups whose window ended before ``cutoff`` and are not graded."""
        self._execute(PENDING_GROUPS_SQL, {"cutoff": cutoff}, what="pending schedule query")
        rows = self._fetch_dicts(what="pending schedule query")
        logger.debug("pending schedule groups: %d (cutoff=%s)", len(rows), cutoff.isoformat())
        return [ScheduleGroup.from_row(r) for r in rows]

    def mark_graded(self, schedule_ids: Sequence[int], decision: GradingDecision) -> int:
        """Mark schedules graded; the grade date defaults to now when the report has none."""
        params = {
            "ids": list(schedule_ids),
            "grade_date": decision.grade_date or datetime.now(),
            "status": decision.status_label,
            "process": PROCESS_NAME,
        }
        self._execute(MARK_GRADED_SQL, params, what="mark graded")
        return self._cursor.rowcount

    def mark_pending(
        self,
        schedule_ids: Sequence[int],
        decision: GradingDecision,
        *,
        qualifiable_future: bool,
    ) -> int:
        """Mark schedules not graded.

        With ``qualifiable_future`` the schedules become non-qualifiable and
        keep the floored qualifiable date, which brings them back into the
        pending selection once that date arrives.
        """
        deferred_until = None
        if qualifiable_future and decision.qualifiable_date is not None:
            deferred_until = floor_to_midnight(decision.qualifiable_date)
        params = {
            "ids": list(schedule_ids),
            "qualifiable": not qualifiable_future,
            "grade_date": decision.grade_date,
            "status": decision.status_label,
            "process": PROCESS_NAME,
            "qualifiable_date": deferred_until,
        }
        self._execute(MARK_PENDING_SQL, params, what="mark pending")
        return self._cursor.rowcount

    # -- audit log ------------------------------------------------------------

    def insert_processing_log(self, entry: ProcessingLogEntry) -> int:
        self._execute(INSERT_LOG_SQL, entry.as_params(), what="processing log insert")
        try:
            row = self._cursor.fetchone()
        except psycopg2.Error as e:
            raise PersistenceError(f"processing log insert failed: {e}") from e
        return row[0] if row else 0

    def find_notification_logs(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        fiche_number: str | None = None,
    ) -> list[dict[str, Any]]:
        """Audit rows for groups that triggered an instructor notification.

        ``fiche_number`` is a case-insensitive prefix; ``start``/``end`` bound
        the notification time, or the processing time when no mail went out.
        Newest first.
        """
        clauses = ["(notification_sent_at IS NOT NULL OR result = %(notification_result)s)"]
        params: dict[str, Any] = {"notification_result": NOTIFICATION_RESULT_MESSAGE}
        if fiche_number:
            clauses.append("fiche_number ILIKE %(fiche_prefix)s")
            params["fiche_prefix"] = _escape_like(fiche_number) + "%"
        if start is not None:
            clauses.append("coalesce(notification_sent_at, processed_at) >= %(start)s")
            params["start"] = start
        if end is not None:
            clauses.append("coalesce(notification_sent_at, processed_at) <= %(end)s")
            params["end"] = end
        sql = (
            "SELECT " + ", ".join(NOTIFICATION_LOG_FIELDS)
            + " FROM daily_processing_logs WHERE " + " AND ".join(clauses)
            + " ORDER BY notification_sent_at DESC NULLS LAST, processed_at DESC"
        )
        self._execute(sql, params, what="notification log query")
        return self._fetch_dicts(what="notification log query")
