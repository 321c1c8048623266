from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from grading_tracker.excel.text import is_missing, normalize_text


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Estado Calificación", "estado calificacion"),
        ("  FECHA CALIFICABLE  ", "fecha calificable"),
        ("Juicio de Evaluación", "juicio de evaluacion"),
        ("Ñandú", "nandu"),
        ("", ""),
        ("   ", ""),
    ],
)
def test_normalize_text_strings(raw: str, expected: str) -> None:
    assert normalize_text(raw) == expected


@pytest.mark.parametrize("missing", [None, float("nan"), math.nan, pd.NaT])
def test_normalize_text_missing_values_are_empty(missing) -> None:
    assert normalize_text(missing) == ""


def test_normalize_text_stringifies_non_strings() -> None:
    assert normalize_text(2758493) == "2758493"
    assert normalize_text(True) == "true"


def test_normalize_text_is_idempotent() -> None:
    once = normalize_text(" Pendiente de Calificación ")
    assert normalize_text(once) == once


@pytest.mark.parametrize("value", [None, float("nan"), pd.NaT, np.nan])
def test_is_missing_scalars(value) -> None:
    assert is_missing(value) is True


@pytest.mark.parametrize("value", ["", "x", 0, [], [None], {"a": 1}])
def test_is_missing_rejects_present_and_list_like_values(value) -> None:
    assert is_missing(value) is False


def test_normalize_text_list_like_cell_is_stringified() -> None:
    assert normalize_text(["A", None]) == "['a', none]"
