# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from grading_tracker.db.schema import reset_schema_state
from grading_tracker.logging.init import reset_logging
from grading_tracker.models.config_models import AppConfig, DatabaseConfig
from grading_tracker.models.schedule_group import InstructorContact, ScheduleGroup

ENV_OVERRIDES = (
    "MAIL_ENABLED",
    "EMAIL_USER",
    "EMAIL_PASS",
    "SMTP_HOST",
    "SMTP_PORT",
    "TEST_MAIL_RECIPIENT",
    "SOFIA_USER",
    "SOFIA_PASS",
    "HEADLESS",
    "SLOWMO",
    "PORT",
    "DATABASE_URL",
    "PGDSN",
    "PGHOST",
    "PGPORT",
    "PGUSER",
    "PGPASSWORD",
    "PGDATABASE",
)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    reset_logging()
    reset_schema_state()
    yield
    reset_logging()
    reset_schema_state()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "reportes").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """report_directory: ./reportes
grace_days: 5
max_groups_per_run: 3
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: horarios
mail:
  enabled: true
  host: smtp.example.org
  port: 465
  user: bot@example.org
  password: app-pass
portal:
  user: "1020304050"
  password: portal-pass
server:
  port: 3000
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "grading.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_report(temp_workdir: Path) -> Callable[..., Path]:
    """Write rows (header row first) to a single-sheet .xlsx report."""

    def _make(rows: list[list[Any]], name: str = "Reporte Juicios 2758493.xlsx") -> Path:
        path = temp_workdir / "reportes" / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name="Reporte", header=False, index=False)
        return path

    return _make


class FakeRepository:
    """In-memory persistence collaborator recording every call in order."""

    def __init__(self, groups=None) -> None:
        self.groups = list(groups or [])
        self.events: list[tuple] = []
        self.logs: list = []
        self.cutoffs: list = []
        self.fail_on: dict[str, BaseException] = {}

    def _maybe_fail(self, name: str) -> None:
        error = self.fail_on.get(name)
        if error is not None:
            raise error

    def begin(self) -> None:
        self.events.append(("begin",))

    def commit(self) -> None:
        self.events.append(("commit",))

    def rollback(self) -> None:
        self.events.append(("rollback",))

    def get_pending_schedule_groups(self, cutoff):
        self._maybe_fail("get_pending_schedule_groups")
        self.cutoffs.append(cutoff)
        return list(self.groups)

    def mark_graded(self, schedule_ids, decision) -> int:
        self._maybe_fail("mark_graded")
        self.events.append(("mark_graded", tuple(schedule_ids), decision))
        return len(schedule_ids)

    def mark_pending(self, schedule_ids, decision, *, qualifiable_future) -> int:
        self._maybe_fail("mark_pending")
        self.events.append(("mark_pending", tuple(schedule_ids), decision, qualifiable_future))
        return len(schedule_ids)

    def insert_processing_log(self, entry) -> int:
        self._maybe_fail("insert_processing_log")
        self.logs.append(replace(entry))
        self.events.append(("log", entry.fiche_number))
        return len(self.logs)


class FakePortal:
    """Portal collaborator serving pre-built report files by ficha number."""

    def __init__(self, reports=None) -> None:
        self.reports = dict(reports or {})
        self.downloads: list[str] = []
        self.logged_in = False
        self.closed = False
        self.login_error: BaseException | None = None

    def login(self) -> None:
        if self.login_error is not None:
            raise self.login_error
        self.logged_in = True

    def download_report(self, fiche_code: str) -> Path:
        self.downloads.append(fiche_code)
        report = self.reports[fiche_code]
        if isinstance(report, BaseException):
            raise report
        return report

    def close(self) -> None:
        self.closed = True


class FakeNotifier:
    def __init__(self, sent: bool = True) -> None:
        self.sent = sent
        self.calls: list[tuple] = []
        self.error: BaseException | None = None

    def notify(self, contact, fiche_number, decision) -> bool:
        self.calls.append((contact, fiche_number, decision))
        if self.error is not None:
            raise self.error
        return self.sent


def make_group(fiche_number: str | None, fiche_id: int = 1, schedule_ids=(10, 11)) -> ScheduleGroup:
    return ScheduleGroup(
        fiche_id=fiche_id,
        fiche_number=fiche_number,
        schedule_ids=tuple(schedule_ids),
        schedule_count=len(schedule_ids),
        instructor=InstructorContact(id=5, name="Ana Ruiz", email="ana@sena.edu.co"),
    )


@pytest.fixture()
def app_config(temp_workdir: Path) -> AppConfig:
    return AppConfig(report_directory=str(temp_workdir / "reportes"), database=DatabaseConfig())


@pytest.fixture()
def fakes():
    """(FakeRepository, FakePortal, FakeNotifier, make_group) for orchestrator tests."""
    return FakeRepository(), FakePortal(), FakeNotifier(), make_group
