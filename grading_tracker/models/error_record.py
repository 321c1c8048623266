from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Failed schedule groups are recorded here in addition to the database audit
record, so failures stay inspectable even when the database write itself is
what failed. The key set is fixed.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        fiche_number: ficha business code ("" when unknown)
        stage: last state the group reached before failing
        error_type: exception class name in UPPER_SNAKE_CASE
        message: error description (chained cause included)
    """
    timestamp: str
    fiche_number: str
    stage: str
    error_type: str
    message: str

    @staticmethod
    def create(fiche_number: str | None, stage: str, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            fiche_number=fiche_number or "",
            stage=stage,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
