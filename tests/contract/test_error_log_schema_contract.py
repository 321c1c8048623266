from __future__ import annotations

import json
from pathlib import Path

from grading_tracker.logging.error_log import ErrorLogBuffer
from grading_tracker.models.error_record import ErrorRecord

EXPECTED_KEYS = {"timestamp", "fiche_number", "stage", "error_type", "message"}


def test_error_log_lines_have_fixed_key_set(temp_workdir: Path) -> None:
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("2758493", "report_downloaded", "EMPTY_REPORT_ERROR", "sin hojas"))
    buf.append(ErrorRecord.create(None, "start", "MISSING_FICHE_NUMBER_ERROR", "sin número"))
    path = buf.flush()
    for line in path.read_text(encoding="utf-8").splitlines():
        payload = json.loads(line)
        assert set(payload) == EXPECTED_KEYS
        assert all(isinstance(v, str) for v in payload.values())
        assert payload["error_type"] == payload["error_type"].upper()
