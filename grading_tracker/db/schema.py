from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import psycopg2

from ..errors import PersistenceError

"""Schema bootstrap and the graded-flag migration.

ensure_schema() creates the tables the tracker reads and writes. It runs at
most once per process: the first successful call sets a module-level flag
and later calls return immediately. Tests reset the flag with
reset_schema_state().
"""

__all__ = [
    "SCHEMA_DDL",
    "MigrationReport",
    "ensure_schema",
    "init_graded_flags",
    "reset_schema_state",
]

logger = logging.getLogger(__name__)

SCHEMA_DDL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS instructors (
        id SERIAL PRIMARY KEY,
        name TEXT,
        email TEXT,
        email_personal TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fiches (
        id SERIAL PRIMARY KEY,
        number TEXT,
        program_name TEXT,
        owner_id INTEGER REFERENCES instructors (id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schedules (
        id SERIAL PRIMARY KEY,
        fiche_id INTEGER NOT NULL REFERENCES fiches (id),
        fend TIMESTAMP,
        calificado BOOLEAN DEFAULT FALSE,
        calificable BOOLEAN DEFAULT TRUE,
        fecha_calificable TIMESTAMP,
        fecha_calificacion TIMESTAMP,
        estado_calificacion TEXT,
        calificado_por_proceso TEXT,
        created_at TIMESTAMP NOT NULL DEFAULT now(),
        updated_at TIMESTAMP NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS schedules_pending_idx ON schedules (fend) WHERE calificado IS NOT TRUE",
    """
    CREATE TABLE IF NOT EXISTS daily_processing_logs (
        id SERIAL PRIMARY KEY,
        fiche_id INTEGER REFERENCES fiches (id),
        fiche_number TEXT,
        instructor_id INTEGER REFERENCES instructors (id),
        instructor_name TEXT,
        instructor_email TEXT,
        schedule_ids INTEGER[],
        schedule_count INTEGER,
        graded BOOLEAN,
        grade_status TEXT,
        grade_date TIMESTAMP,
        qualifiable BOOLEAN,
        qualifiable_date TIMESTAMP,
        report_file TEXT,
        result TEXT,
        error_message TEXT,
        notification_sent_at TIMESTAMP,
        processed_at TIMESTAMP NOT NULL DEFAULT now()
    )
    """,
)

SAMPLE_LIMIT = 5
UNNAMED_PROGRAM = "Programa sin nombre"

_schema_ready = False


@dataclass(frozen=True)
class MigrationReport:
    updated: int  # rows switched from NULL to calificado=false
    total: int
    pending: int
    graded: int
    samples: list[str] = field(default_factory=list)


def ensure_schema(cursor: Any) -> bool:
    """Create missing tables once per process.

    Returns:
        True when the DDL ran on this call, False when it had already run.
    """
    global _schema_ready
    if _schema_ready:
        return False
    try:
        for statement in SCHEMA_DDL:
            cursor.execute(statement)
    except psycopg2.Error as e:
        raise PersistenceError(f"schema bootstrap failed: {e}") from e
    _schema_ready = True
    logger.debug("schema ready (%d statements)", len(SCHEMA_DDL))
    return True


def reset_schema_state() -> None:
    global _schema_ready
    _schema_ready = False


def _describe_sample(schedule_id: Any, fiche_number: str | None, program_name: str | None) -> str:
    program = program_name or UNNAMED_PROGRAM
    if fiche_number:
        return f"{program} ficha: {fiche_number}"
    return f"{program} (horario: {schedule_id if schedule_id is not None else 'desconocido'})"


def init_graded_flags(cursor: Any) -> MigrationReport:
    """Set calificado=false on schedules where it is NULL and report totals.

    The sample lists up to five schedules still pending after the update,
    described by program name and ficha number.
    """
    try:
        cursor.execute("UPDATE schedules SET calificado = FALSE WHERE calificado IS NULL")
        updated = cursor.rowcount or 0
        cursor.execute(
            """
            SELECT count(*),
                   count(*) FILTER (WHERE calificado = FALSE),
                   count(*) FILTER (WHERE calificado = TRUE)
            FROM schedules
            """
        )
        total, pending, graded = cursor.fetchone()
        cursor.execute(
            """
            SELECT s.id, f.number, f.program_name
            FROM schedules s
            LEFT JOIN fiches f ON f.id = s.fiche_id
            WHERE s.calificado = FALSE
            ORDER BY s.id
            LIMIT %s
            """,
            (SAMPLE_LIMIT,),
        )
        samples = [_describe_sample(*row) for row in cursor.fetchall()]
    except psycopg2.Error as e:
        raise PersistenceError(f"graded flag migration failed: {e}") from e

    report = MigrationReport(
        updated=updated, total=total, pending=pending, graded=graded, samples=samples
    )
    logger.info("schedules updated with calificado=false: %d", report.updated)
    logger.info("schedules total=%d pending=%d graded=%d", report.total, report.pending, report.graded)
    for sample in report.samples:
        logger.info("pending sample: %s", sample)
    return report
