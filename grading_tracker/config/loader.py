from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AppConfig,
    DatabaseConfig,
    MailConfig,
    PortalConfig,
    ServerConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/grading.yml)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults and environment overrides for secrets and toggles

Database environment variables (DATABASE_URL, PGDSN, PG*) are resolved when
the connection is opened (grading_tracker.db.connection), not here.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/grading.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
            (missing required keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"environment variable {name} must be an integer: {raw!r}") from e


def _build_mail(raw: Mapping[str, Any]) -> MailConfig:
    return MailConfig(
        enabled=_env_bool("MAIL_ENABLED", bool(raw.get("enabled", False))),
        host=os.getenv("SMTP_HOST") or raw.get("host") or "smtp.gmail.com",
        port=_env_int("SMTP_PORT", int(raw.get("port", 465))),
        user=os.getenv("EMAIL_USER") or raw.get("user"),
        password=os.getenv("EMAIL_PASS") or raw.get("password"),
        sender=raw.get("sender"),
        test_recipient=os.getenv("TEST_MAIL_RECIPIENT") or raw.get("test_recipient"),
    )


def _build_portal(raw: Mapping[str, Any]) -> PortalConfig:
    defaults = PortalConfig()
    return PortalConfig(
        url=raw.get("url", defaults.url),
        role=raw.get("role", defaults.role),
        user=os.getenv("SOFIA_USER") or raw.get("user"),
        password=os.getenv("SOFIA_PASS") or raw.get("password"),
        headless=_env_bool("HEADLESS", bool(raw.get("headless", defaults.headless))),
        slow_mo_ms=_env_int("SLOWMO", int(raw.get("slow_mo_ms", defaults.slow_mo_ms))),
        timeout_ms=int(raw.get("timeout_ms", defaults.timeout_ms)),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    server_raw = data.get("server") or {}
    return AppConfig(
        report_directory=data["report_directory"],
        database=db,
        grace_days=data.get("grace_days", AppConfig.grace_days),
        max_groups_per_run=data.get("max_groups_per_run", AppConfig.max_groups_per_run),
        mail=_build_mail(data.get("mail") or {}),
        portal=_build_portal(data.get("portal") or {}),
        server=ServerConfig(
            host=server_raw.get("host", ServerConfig.host),
            port=_env_int("PORT", int(server_raw.get("port", ServerConfig.port))),
        ),
    )
