from __future__ import annotations

import argparse
import sys
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv
from xlrd import XLRDError

from grading_tracker.api.app import create_app
from grading_tracker.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from grading_tracker.db.connection import db_connection
from grading_tracker.db.repository import ScheduleRepository
from grading_tracker.db.schema import ensure_schema, init_graded_flags
from grading_tracker.errors import PersistenceError
from grading_tracker.excel.reader import EmptyReportError
from grading_tracker.logging.init import log_summary, setup_logging
from grading_tracker.models.config_models import AppConfig
from grading_tracker.portal.client import SofiaPlusClient
from grading_tracker.services.decision import analyze_report
from grading_tracker.services.notification_logs import NotificationLogService
from grading_tracker.services.notifier import InstructorNotifier
from grading_tracker.services.orchestrator import ProcessingError, process_pending_groups
from grading_tracker.services.summary import render_summary_line

"""CLI entrypoint.

Modes:
- default: daily grading check over the pending schedule groups
- --inspect-report FILE: print the decision for a local report (no DB, no portal)
- --init-db: create tables and initialise NULL graded flags
- --serve: run the notification-log query server

Exit codes: 0 success (or nothing pending), 2 at least one group failed,
1 fatal (config, database connectivity, portal session).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with override so its values win over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="grading-tracker",
        description="Ficha grading tracker (SofiaPlus evaluation reports)",
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config"
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        "--inspect-report",
        type=Path,
        metavar="FILE",
        help="Print the grading decision for a local report file then exit",
    )
    mode.add_argument("--init-db", action="store_true", help="Create tables and init graded flags")
    mode.add_argument("--serve", action="store_true", help="Run the notification-log HTTP server")
    return p.parse_args(argv)


def _format_date(value) -> str:
    return value.isoformat(sep=" ") if value is not None else "-"


def _inspect_report(path: Path) -> int:
    if not path.exists():
        print(f"inspect: file not found: {path}")
        return EXIT_FATAL
    try:
        decision = analyze_report(path)
    except (EmptyReportError, OSError, ValueError, zipfile.BadZipFile, XLRDError) as e:
        # corrupt workbooks surface as zip or xlrd errors
        print(f"inspect: {path.name}: {e}")
        return EXIT_FATAL
    print(f"REPORT: {path.name}")
    print(f"  graded={decision.graded}")
    print(f"  status={decision.status_label}")
    print(f"  grade_date={_format_date(decision.grade_date)}")
    print(f"  qualifiable_date={_format_date(decision.qualifiable_date)}")
    return EXIT_SUCCESS_ALL


def _init_db(cfg: AppConfig, logger) -> int:
    try:
        with db_connection(cfg) as cur:
            ensure_schema(cur)
            init_graded_flags(cur)
    except (psycopg2.Error, PersistenceError) as e:
        logger.error(f"init-db: {e}")
        return EXIT_FATAL
    logger.info("init-db finished")
    return EXIT_SUCCESS_ALL


def _serve(cfg: AppConfig, logger) -> int:  # pragma: no cover (blocking server)
    @contextmanager
    def repositories() -> Iterator[ScheduleRepository]:
        with db_connection(cfg) as cur:
            yield ScheduleRepository(cur)

    app = create_app(NotificationLogService(repositories))
    logger.info(f"serving notification logs on {cfg.server.host}:{cfg.server.port}")
    app.run(host=cfg.server.host, port=cfg.server.port)
    return EXIT_SUCCESS_ALL


def _run(cfg: AppConfig, logger) -> int:
    try:
        with db_connection(cfg) as cur:
            ensure_schema(cur)
            repository = ScheduleRepository(cur)
            portal = SofiaPlusClient(cfg.portal, Path(cfg.report_directory))
            notifier = InstructorNotifier(cfg.mail)
            try:
                result = process_pending_groups(cfg, repository, portal, notifier)
            except ProcessingError as e:
                logger.error(f"processing: {e}")
                return EXIT_FATAL
    except (psycopg2.Error, PersistenceError) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])

    if result.failed > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an empty list from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    if args.inspect_report is not None:
        return _inspect_report(args.inspect_report)

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.init_db:
        return _init_db(cfg, logger)
    if args.serve:
        return _serve(cfg, logger)
    return _run(cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
