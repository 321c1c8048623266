from __future__ import annotations

from dataclasses import dataclass, field

"""Configuration dataclasses for the grading tracker.

Built by grading_tracker.config.loader from config/grading.yml after schema
validation and environment overrides.
"""

DEFAULT_GRACE_DAYS = 5
DEFAULT_MAX_GROUPS_PER_RUN = 3
DEFAULT_PORTAL_URL = "http://senasofiaplus.edu.co/sofia-public/"
DEFAULT_PORTAL_ROLE = "Gestión Desarrollo Curricular"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback configuration.

    Environment variables (DATABASE_URL, PGDSN, PG*) take precedence when the
    connection is opened.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class MailConfig:
    enabled: bool = False
    host: str = "smtp.gmail.com"
    port: int = 465
    user: str | None = None
    password: str | None = None
    sender: str | None = None  # defaults to user
    test_recipient: str | None = None  # overrides every instructor address


@dataclass(frozen=True)
class PortalConfig:
    url: str = DEFAULT_PORTAL_URL
    role: str = DEFAULT_PORTAL_ROLE
    user: str | None = None
    password: str | None = None
    headless: bool = True
    slow_mo_ms: int = 100
    timeout_ms: int = 60000


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    report_directory: str  # where downloaded reports are saved
    database: DatabaseConfig
    grace_days: int = DEFAULT_GRACE_DAYS  # schedules must have ended this many days ago
    max_groups_per_run: int = DEFAULT_MAX_GROUPS_PER_RUN
    mail: MailConfig = field(default_factory=MailConfig)
    portal: PortalConfig = field(default_factory=PortalConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
