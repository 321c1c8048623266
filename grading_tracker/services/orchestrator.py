from __future__ import annotations

import logging
import re
import time
from datetime import UTC, datetime, timedelta
from typing import Any

from ..errors import PersistenceError, PortalError
from ..excel.temporal import floor_to_midnight
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import AppConfig
from ..models.processing_log import (
    DEFERRED_RESULT_MESSAGE,
    GRADED_RESULT_MESSAGE,
    NOTIFICATION_RESULT_MESSAGE,
    ProcessingLogEntry,
)
from ..models.processing_result import GroupStat, GroupState, RunResult
from ..models.schedule_group import ScheduleGroup
from .decision import analyze_report
from .notifier import CONTACT_RULES, resolve_address
from .progress import ProgressTracker

"""Daily grading check orchestration.

process_pending_groups() drives one run:
1. compute today's local midnight and the cutoff (today - grace_days)
2. fetch pending schedule groups and cap the batch (max_groups_per_run)
3. open one portal session for the whole batch
4. process each group in its own transaction, one audit record per group
5. flush the JSON Lines error log and return a RunResult

A failing group is rolled back, logged and counted; the batch continues.
Only the pending-group query and the portal login abort the run
(ProcessingError).
"""

__all__ = [
    "ProcessingError",
    "MissingFicheNumberError",
    "MISSING_FICHE_NUMBER_MESSAGE",
    "process_pending_groups",
]

logger = logging.getLogger(__name__)

MISSING_FICHE_NUMBER_MESSAGE = "La ficha no tiene número asignado."


class ProcessingError(Exception):
    """Fatal error that prevents the batch from running."""


class MissingFicheNumberError(ValueError):
    pass


def _error_type(error: BaseException) -> str:
    # PortalError -> PORTAL_ERROR
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(error).__name__).upper()


def _describe(error: BaseException) -> str:
    if error.__cause__ is not None and str(error.__cause__) not in str(error):
        return f"{error} (caused by {type(error.__cause__).__name__}: {error.__cause__})"
    return str(error)


def _run_group(
    group: ScheduleGroup,
    entry: ProcessingLogEntry,
    *,
    today: datetime,
    repository: Any,
    portal: Any,
    notifier: Any,
    track: list[GroupState],
) -> GroupState:
    """Walk one group from START to its terminal state.

    The reached state is appended to ``track`` as it changes so the caller
    knows where a failure happened. The audit entry is filled in place.
    """
    if not group.fiche_number:
        raise MissingFicheNumberError(MISSING_FICHE_NUMBER_MESSAGE)

    report_path = portal.download_report(group.fiche_number)
    entry.report_file = report_path.name
    track.append(GroupState.REPORT_DOWNLOADED)

    decision = analyze_report(report_path)
    entry.graded = decision.graded
    entry.grade_status = decision.status_label
    entry.grade_date = decision.grade_date
    qualifiable_day = (
        floor_to_midnight(decision.qualifiable_date)
        if decision.qualifiable_date is not None
        else None
    )
    entry.qualifiable_date = qualifiable_day
    track.append(GroupState.DECIDED)

    if decision.graded:
        entry.qualifiable = True
        entry.qualifiable_date = None
        repository.mark_graded(group.schedule_ids, decision)
        entry.result = GRADED_RESULT_MESSAGE
        return GroupState.GRADED_APPLIED

    # both sides are at midnight, so a same-day date is not "future"
    qualifiable_future = qualifiable_day is not None and qualifiable_day > today
    entry.qualifiable = not qualifiable_future
    repository.mark_pending(
        group.schedule_ids, decision, qualifiable_future=qualifiable_future
    )
    if qualifiable_future:
        entry.result = DEFERRED_RESULT_MESSAGE
        logger.info(
            "ficha %s qualifiable from %s; follow-up postponed",
            group.fiche_number,
            qualifiable_day.date().isoformat(),
        )
        return GroupState.FUTURE_DEFERRED

    entry.result = NOTIFICATION_RESULT_MESSAGE
    entry.notification_sent_at = datetime.now()
    sent = notifier.notify(group.instructor, group.fiche_number, decision)
    if not sent:
        logger.info("ficha %s pending grading; no mail was sent", group.fiche_number)
    return GroupState.NOTIFICATION_SENT


def _write_failure_log(
    entry: ProcessingLogEntry,
    repository: Any,
    error_log: ErrorLogBuffer,
) -> bool:
    """Persist the failure audit record in its own transaction."""
    try:
        repository.begin()
        repository.insert_processing_log(entry)
        repository.commit()
    except PersistenceError as e:
        logger.error("ficha %s: audit record not written: %s", entry.fiche_number, e)
        error_log.append(
            ErrorRecord.create(entry.fiche_number, GroupState.FAILED.value, _error_type(e), _describe(e))
        )
        try:
            repository.rollback()
        except PersistenceError as rb:
            logger.debug("rollback after audit failure also failed: %s", rb)
        return False
    return True


def _process_group(
    group: ScheduleGroup,
    *,
    config: AppConfig,
    today: datetime,
    repository: Any,
    portal: Any,
    notifier: Any,
    error_log: ErrorLogBuffer,
) -> GroupStat:
    started = time.perf_counter()
    entry = ProcessingLogEntry.for_group(
        group, resolve_address(group.instructor, config.mail, CONTACT_RULES)
    )
    track = [GroupState.START]
    try:
        repository.begin()
        outcome = _run_group(
            group,
            entry,
            today=today,
            repository=repository,
            portal=portal,
            notifier=notifier,
            track=track,
        )
        entry.processed_at = datetime.now()
        repository.insert_processing_log(entry)
        repository.commit()
    except Exception as e:
        failed_from = track[-1]
        logger.error("error processing ficha %s: %s", group.fiche_number, _describe(e))
        logger.debug("failure detail", exc_info=True)
        error_log.append(
            ErrorRecord.create(group.fiche_number, failed_from.value, _error_type(e), _describe(e))
        )
        try:
            repository.rollback()
        except PersistenceError as rb:
            logger.error("rollback failed for ficha %s: %s", group.fiche_number, rb)
            error_log.append(
                ErrorRecord.create(group.fiche_number, failed_from.value, "TRANSACTION_ROLLBACK_ERROR", str(rb))
            )
        entry.mark_failed(e)
        entry.processed_at = datetime.now()
        logged = _write_failure_log(entry, repository, error_log)
        return GroupStat(
            fiche_number=group.fiche_number,
            outcome=GroupState.FAILED,
            elapsed_seconds=time.perf_counter() - started,
            failed_from=failed_from,
            error=str(e),
            logged=logged,
        )

    logger.info("ficha %s: %s (%s)", group.fiche_number, entry.result, entry.grade_status)
    return GroupStat(
        fiche_number=group.fiche_number,
        outcome=outcome,
        elapsed_seconds=time.perf_counter() - started,
    )


def process_pending_groups(
    config: AppConfig,
    repository: Any,
    portal: Any,
    notifier: Any,
    today: datetime | None = None,
) -> RunResult:
    """Run the daily grading check over the pending schedule groups.

    Args:
        config: application configuration (grace days, batch cap, mail)
        repository: persistence collaborator (ScheduleRepository)
        portal: portal collaborator (SofiaPlusClient); closed on return
        notifier: notification collaborator (InstructorNotifier)
        today: reference day, defaults to now; floored to midnight

    Returns:
        RunResult with per-outcome counters and per-group stats

    Raises:
        ProcessingError: pending-group query or portal login failed
    """
    start_time = datetime.now(UTC)
    started = time.perf_counter()
    today = floor_to_midnight(today or datetime.now())
    cutoff = today - timedelta(days=config.grace_days)

    try:
        groups = repository.get_pending_schedule_groups(cutoff)
    except PersistenceError as e:
        raise ProcessingError(f"could not query pending schedules: {e}") from e

    if not groups:
        logger.info("no schedules pending grading (cutoff %s)", cutoff.date().isoformat())
        end_time = datetime.now(UTC)
        return RunResult(
            pending_groups=0,
            processed_groups=0,
            graded=0,
            deferred=0,
            notified=0,
            failed=0,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=time.perf_counter() - started,
            group_stats=[],
        )

    batch = groups[: config.max_groups_per_run]
    left = len(groups) - len(batch)
    logger.info("found %d fichas with schedules pending grading", len(groups))
    if left > 0:
        logger.info("processing %d fichas; %d left for the next run", len(batch), left)
    else:
        logger.info("processing %d fichas", len(batch))

    error_log = ErrorLogBuffer()
    stats: list[GroupStat] = []
    counts = {state: 0 for state in GroupState}
    try:
        try:
            portal.login()
        except PortalError as e:
            raise ProcessingError(f"portal login failed: {e}") from e

        with ProgressTracker(len(batch), description="Processing fichas") as progress:
            for group in batch:
                progress.start_group(group.fiche_number)
                stat = _process_group(
                    group,
                    config=config,
                    today=today,
                    repository=repository,
                    portal=portal,
                    notifier=notifier,
                    error_log=error_log,
                )
                stats.append(stat)
                counts[stat.outcome] += 1
                progress.set_postfix(
                    graded=counts[GroupState.GRADED_APPLIED],
                    failed=counts[GroupState.FAILED],
                )
                progress.finish_group()
    finally:
        portal.close()
        try:
            path = error_log.flush()
        except OSError as e:
            logger.warning("could not write error log: %s", e)
        else:
            if path is not None:
                logger.info("error log written: %s", path)

    end_time = datetime.now(UTC)
    return RunResult(
        pending_groups=len(groups),
        processed_groups=len(stats),
        graded=counts[GroupState.GRADED_APPLIED],
        deferred=counts[GroupState.FUTURE_DEFERRED],
        notified=counts[GroupState.NOTIFICATION_SENT],
        failed=counts[GroupState.FAILED],
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=time.perf_counter() - started,
        group_stats=stats,
    )
