from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any

from ..db.repository import ScheduleRepository

"""Read side of the audit log: which fichas triggered an instructor mail."""

__all__ = [
    "RESPONSE_FIELDS",
    "NotificationLogService",
    "map_log_to_response",
]

logger = logging.getLogger(__name__)

# response key -> audit column
RESPONSE_FIELDS = (
    ("ficheNumber", "fiche_number"),
    ("instructorName", "instructor_name"),
    ("instructorEmail", "instructor_email"),
    ("gradeStatus", "grade_status"),
    ("gradeDate", "grade_date"),
    ("reportFile", "report_file"),
    ("processedAt", "processed_at"),
)

RepositoryFactory = Callable[[], AbstractContextManager[ScheduleRepository]]


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def map_log_to_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return {key: _jsonable(row.get(column)) for key, column in RESPONSE_FIELDS}


class NotificationLogService:
    """Query notification audit entries.

    Args:
        repositories: zero-argument callable returning a context manager that
            yields a ScheduleRepository; one is opened per query so the HTTP
            server never shares a cursor between requests.
    """

    def __init__(self, repositories: RepositoryFactory) -> None:
        self._repositories = repositories

    def find_email_notification_logs(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        fiche_number: str | None = None,
    ) -> list[dict[str, Any]]:
        with self._repositories() as repository:
            rows = repository.find_notification_logs(
                start=start, end=end, fiche_number=fiche_number
            )
        logger.debug("notification logs: %d rows", len(rows))
        return [map_log_to_response(r) for r in rows]
