"""Domain models for the ficha grading tracker.

Report inference models live in report.py; the schedule group, audit log, run
result, error record and configuration models in their own modules.
"""

from .config_models import AppConfig, DatabaseConfig, MailConfig, PortalConfig, ServerConfig
from .processing_log import ProcessingLogEntry
from .processing_result import GroupStat, GroupState, RunResult
from .report import ColumnResolution, ColumnRole, GradingDecision, ReportTable
from .schedule_group import InstructorContact, ScheduleGroup

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "MailConfig",
    "PortalConfig",
    "ServerConfig",
    # Report inference models
    "ReportTable",
    "ColumnRole",
    "ColumnResolution",
    "GradingDecision",
    # Processing models
    "ScheduleGroup",
    "InstructorContact",
    "ProcessingLogEntry",
    "GroupState",
    "GroupStat",
    "RunResult",
]
