from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""ScheduleGroup model.

A ScheduleGroup is one ficha's set of schedules whose grading window has
closed and which are not yet marked graded, together with the contact data of
the ficha's owning instructor. The inference core never mutates it.
"""

__all__ = [
    "InstructorContact",
    "ScheduleGroup",
]


@dataclass(frozen=True)
class InstructorContact:
    id: int | None = None
    name: str | None = None
    email: str | None = None  # institutional address
    email_personal: str | None = None


@dataclass(frozen=True)
class ScheduleGroup:
    """Pending schedules of one ficha."""
    fiche_id: int
    fiche_number: str | None  # business code used on the portal
    schedule_ids: tuple[int, ...] = field(default_factory=tuple)
    schedule_count: int = 0
    instructor: InstructorContact = field(default_factory=InstructorContact)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ScheduleGroup:
        """Build from a pending-groups query row (column name -> value)."""
        ids = tuple(row.get("schedule_ids") or ())
        return cls(
            fiche_id=row["fiche_id"],
            fiche_number=row.get("fiche_number"),
            schedule_ids=ids,
            schedule_count=row.get("schedule_count") or len(ids),
            instructor=InstructorContact(
                id=row.get("instructor_id"),
                name=row.get("instructor_name"),
                email=row.get("instructor_email"),
                email_personal=row.get("instructor_email_personal"),
            ),
        )
