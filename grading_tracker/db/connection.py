from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..models.config_models import AppConfig, DatabaseConfig

"""PostgreSQL connection handling.

DSN resolution order (``.env`` is loaded with override=True before this runs,
so its values win over the inherited environment):
    1. DATABASE_URL / PGDSN used verbatim
    2. config ``database.dsn``
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling back
       to the matching config key and then to the libpq default
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(cfg: AppConfig) -> Iterator[Any]:  # pragma: no cover (needs a server)
    """Yield a psycopg2 cursor on a fresh connection.

    The connection runs in autocommit mode; transaction boundaries are the
    explicit BEGIN/COMMIT/ROLLBACK statements issued by the repository, so
    a failed group never leaves an implicit transaction open.
    """
    conn = psycopg2.connect(resolve_dsn(cfg.database))
    try:
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()
        logger.debug("database connection closed")
