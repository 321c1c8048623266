from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from ..models.report import ColumnResolution
from .text import normalize_text

"""Header resolution for grading reports.

Column order and exact labels in the portal reports are not stable, so columns
are located by substring predicates over normalized header text. Each role has
a prioritized predicate chain; the first predicate that matches any header
wins, which degrades gracefully when a report drops the more specific label.
"""

__all__ = [
    "HeaderPredicate",
    "STATUS_PREDICATES",
    "GRADE_DATE_PREDICATES",
    "is_qualifiable_date_header",
    "find_header_index",
    "find_header_indexes",
    "find_first_by_priority",
    "resolve_columns",
]

HeaderPredicate = Callable[[str], bool]


STATUS_PREDICATES: tuple[HeaderPredicate, ...] = (
    lambda h: "estado" in h and "calific" in h,
    lambda h: "estado" in h and "juicio" in h,
    lambda h: "estado" in h,
)

GRADE_DATE_PREDICATES: tuple[HeaderPredicate, ...] = (
    lambda h: "fecha" in h and "calific" in h,
    lambda h: "fecha" in h,
)


def is_qualifiable_date_header(header: str) -> bool:
    return "fecha" in header and "calificable" in header


def find_header_index(headers: Sequence[Any], predicate: HeaderPredicate) -> int | None:
    """Return the index of the first non-empty header matching predicate.

    Headers are normalized before the predicate sees them. Returns None when
    nothing matches.
    """
    for index, header in enumerate(headers):
        normalized = normalize_text(header)
        if not normalized:
            continue
        if predicate(normalized):
            return index
    return None


def find_header_indexes(headers: Sequence[Any], predicate: HeaderPredicate) -> list[int]:
    """Return every matching header index, left to right."""
    indexes: list[int] = []
    for index, header in enumerate(headers):
        normalized = normalize_text(header)
        if not normalized:
            continue
        if predicate(normalized):
            indexes.append(index)
    return indexes


def find_first_by_priority(
    headers: Sequence[Any], predicates: Sequence[HeaderPredicate]
) -> int | None:
    """Walk a predicate chain and return the first resolved index."""
    for predicate in predicates:
        index = find_header_index(headers, predicate)
        if index is not None:
            return index
    return None


def resolve_columns(headers: Sequence[Any]) -> ColumnResolution:
    """Resolve status, grade date and qualifiable date columns for a header row."""
    return ColumnResolution(
        status_index=find_first_by_priority(headers, STATUS_PREDICATES),
        grade_date_index=find_first_by_priority(headers, GRADE_DATE_PREDICATES),
        qualifiable_date_indexes=tuple(find_header_indexes(headers, is_qualifiable_date_header)),
    )
