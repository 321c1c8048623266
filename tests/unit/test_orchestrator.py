from __future__ import annotations

import json
from datetime import datetime

import pytest

from grading_tracker.errors import NotificationError, PersistenceError, PortalError
from grading_tracker.models.processing_log import (
    DEFERRED_RESULT_MESSAGE,
    FAILED_GRADE_STATUS,
    FAILED_RESULT_MESSAGE,
    GRADED_RESULT_MESSAGE,
    NOTIFICATION_RESULT_MESSAGE,
)
from grading_tracker.models.processing_result import GroupState
from grading_tracker.services.orchestrator import (
    MISSING_FICHE_NUMBER_MESSAGE,
    ProcessingError,
    process_pending_groups,
)

TODAY = datetime(2024, 3, 15, 14, 30)
HEADERS = ["Nombre", "Estado Calificación", "Fecha Calificación", "Fecha Calificable"]
GRADED = [HEADERS, ["Ana", "Calificado", "12/03/2024", None]]
FUTURE = [HEADERS, ["Ana", "Sin Calificar", None, "01/01/2099"]]
PAST = [HEADERS, ["Ana", "Pendiente", None, "01/03/2024"]]
SAME_DAY = [HEADERS, ["Ana", "Pendiente", None, "15/03/2024 08:00"]]


def _report(make_report, number: str, rows):
    return make_report(rows, name=f"Reporte Juicios {number}.xlsx")


def test_no_pending_groups_never_touches_portal(app_config, fakes) -> None:
    repo, portal, notifier, _ = fakes
    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)
    assert (result.pending_groups, result.processed_groups, result.failed) == (0, 0, 0)
    assert result.group_stats == []
    assert portal.logged_in is False
    assert portal.closed is False
    assert repo.events == []


def test_cutoff_is_grace_days_before_local_midnight(app_config, fakes) -> None:
    repo, portal, notifier, _ = fakes
    process_pending_groups(app_config, repo, portal, notifier, today=TODAY)
    assert repo.cutoffs == [datetime(2024, 3, 10)]


def test_graded_report_marks_schedules(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group("2758493", schedule_ids=(10, 11))]
    portal.reports["2758493"] = _report(make_report, "2758493", GRADED)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.graded == 1 and result.failed == 0
    assert [e[0] for e in repo.events] == ["begin", "mark_graded", "log", "commit"]
    assert repo.events[1][1] == (10, 11)
    assert notifier.calls == []
    entry = repo.logs[0]
    assert entry.graded is True
    assert entry.grade_date == datetime(2024, 3, 12)
    assert entry.qualifiable is True and entry.qualifiable_date is None
    assert entry.result == GRADED_RESULT_MESSAGE
    assert entry.report_file == "Reporte Juicios 2758493.xlsx"
    assert entry.instructor_email == "ana@sena.edu.co"
    assert portal.logged_in and portal.closed


def test_future_qualifiable_date_defers_without_notification(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group("2758493")]
    portal.reports["2758493"] = _report(make_report, "2758493", FUTURE)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.deferred == 1 and result.notified == 0
    assert notifier.calls == []
    _, ids, decision, qualifiable_future = repo.events[1]
    assert qualifiable_future is True
    assert decision.graded is False
    entry = repo.logs[0]
    assert entry.qualifiable is False
    assert entry.qualifiable_date == datetime(2099, 1, 1)
    assert entry.result == DEFERRED_RESULT_MESSAGE
    assert entry.notification_sent_at is None


def test_past_qualifiable_date_notifies_instructor(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    group = make_group("2758493")
    repo.groups = [group]
    portal.reports["2758493"] = _report(make_report, "2758493", PAST)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.notified == 1
    assert notifier.calls[0][:2] == (group.instructor, "2758493")
    assert repo.events[1][3] is False
    entry = repo.logs[0]
    assert entry.qualifiable is True
    assert entry.result == NOTIFICATION_RESULT_MESSAGE
    assert entry.notification_sent_at is not None


def test_same_day_qualifiable_date_is_not_future(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group("2758493")]
    portal.reports["2758493"] = _report(make_report, "2758493", SAME_DAY)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.notified == 1 and result.deferred == 0
    assert repo.logs[0].qualifiable_date == datetime(2024, 3, 15)


def test_unsent_mail_still_counts_as_notification_state(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    notifier.sent = False
    repo.groups = [make_group("2758493")]
    portal.reports["2758493"] = _report(make_report, "2758493", PAST)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.notified == 1
    assert repo.logs[0].notification_sent_at is not None


def test_batch_cap_limits_processed_groups(app_config, fakes, make_report) -> None:
    repo, portal, notifier, make_group = fakes
    numbers = [f"10{i}" for i in range(5)]
    repo.groups = [make_group(n, fiche_id=i) for i, n in enumerate(numbers)]
    for n in numbers:
        portal.reports[n] = _report(make_report, n, GRADED)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert portal.downloads == numbers[:3]
    assert (result.pending_groups, result.processed_groups) == (5, 3)
    assert result.deferred_to_next_run == 2


def test_missing_fiche_number_is_logged_as_failure(app_config, fakes, temp_workdir) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group(None)]

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.failed == 1
    assert portal.downloads == []
    stat = result.group_stats[0]
    assert stat.outcome is GroupState.FAILED
    assert stat.failed_from is GroupState.START
    entry = repo.logs[0]
    assert entry.error_message == MISSING_FICHE_NUMBER_MESSAGE
    assert entry.grade_status == FAILED_GRADE_STATUS
    assert entry.result == FAILED_RESULT_MESSAGE


def test_failed_group_is_rolled_back_and_batch_continues(
    app_config, fakes, make_report, temp_workdir
) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group("111", fiche_id=1), make_group("222", fiche_id=2)]
    portal.reports["111"] = PortalError("download timed out")
    portal.reports["222"] = _report(make_report, "222", GRADED)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert (result.failed, result.graded, result.processed_groups) == (1, 1, 2)
    assert [e[0] for e in repo.events] == [
        "begin", "rollback", "begin", "log", "commit",
        "begin", "mark_graded", "log", "commit",
    ]
    assert repo.logs[0].error_message == "download timed out"
    assert result.group_stats[0].failed_from is GroupState.START

    files = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(files) == 1
    record = json.loads(files[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["fiche_number"] == "111"
    assert record["stage"] == "start"
    assert record["error_type"] == "PORTAL_ERROR"


def test_notification_failure_rolls_back_pending_update(
    app_config, fakes, make_report, temp_workdir
) -> None:
    repo, portal, notifier, make_group = fakes
    notifier.error = NotificationError("smtp unavailable")
    repo.groups = [make_group("2758493")]
    portal.reports["2758493"] = _report(make_report, "2758493", PAST)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    assert result.failed == 1 and result.notified == 0
    assert [e[0] for e in repo.events] == ["begin", "mark_pending", "rollback", "begin", "log", "commit"]
    assert result.group_stats[0].failed_from is GroupState.DECIDED
    assert repo.logs[0].grade_status == FAILED_GRADE_STATUS


def test_audit_write_failure_is_reported_not_raised(
    app_config, fakes, make_report, temp_workdir
) -> None:
    repo, portal, notifier, make_group = fakes
    repo.fail_on["insert_processing_log"] = PersistenceError("insert processing log failed: disk full")
    repo.groups = [make_group("2758493")]
    portal.reports["2758493"] = _report(make_report, "2758493", GRADED)

    result = process_pending_groups(app_config, repo, portal, notifier, today=TODAY)

    stat = result.group_stats[0]
    assert stat.outcome is GroupState.FAILED
    assert stat.logged is False
    lines = next((temp_workdir / "logs").glob("errors-*.log")).read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(json.loads(line)["error_type"] == "PERSISTENCE_ERROR" for line in lines)


def test_login_failure_is_fatal_and_closes_portal(app_config, fakes) -> None:
    repo, portal, notifier, make_group = fakes
    repo.groups = [make_group("2758493")]
    portal.login_error = PortalError("invalid credentials")

    with pytest.raises(ProcessingError, match="portal login failed"):
        process_pending_groups(app_config, repo, portal, notifier, today=TODAY)
    assert portal.closed is True
    assert repo.events == []


def test_pending_query_failure_is_fatal(app_config, fakes) -> None:
    repo, portal, notifier, _ = fakes
    repo.fail_on["get_pending_schedule_groups"] = PersistenceError("relation does not exist")

    with pytest.raises(ProcessingError) as exc:
        process_pending_groups(app_config, repo, portal, notifier, today=TODAY)
    assert isinstance(exc.value.__cause__, PersistenceError)
    assert portal.logged_in is False
