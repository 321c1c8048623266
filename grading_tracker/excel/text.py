from __future__ import annotations

import unicodedata
from typing import Any

import pandas as pd

"""Text normalization shared by header resolution and status classification.

Report headers and status cells arrive with inconsistent accents and casing
("Calificación", "CALIFICACION", " calificacion "), so both sides of every
comparison go through normalize_text() before substring matching.
"""

__all__ = [
    "is_missing",
    "normalize_text",
]


def is_missing(value: Any) -> bool:
    """True for None and pandas scalar missing values (NaN, NaT).

    Non-scalar cells (lists, dicts) are never missing.
    """
    if value is None:
        return True
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def normalize_text(value: Any) -> str:
    """Collapse diacritics, case and surrounding whitespace.

    None and pandas missing values (NaN/NaT) become an empty string; anything
    else is stringified first.

    >>> normalize_text("  Estado Calificación ")
    'estado calificacion'
    >>> normalize_text(None)
    ''
    """
    if is_missing(value):
        return ""
    decomposed = unicodedata.normalize("NFD", str(value))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()
