"""Configuration management for the archive job."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from auto_archive.domain.models import Frequency
from auto_archive.utils.http import normalize_base_url

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class ArchiveSettings(BaseModel):
    """Which table is archived, where to, and how often."""

    base_id: str = Field(default="", description="Base holding the master table")
    table: str = Field(default="", description="Master table name or id")
    api_key: str = Field(default="", description="Personal access token")
    frequency: Frequency = Field(default=Frequency.MONTHLY)
    workspace_id: str = Field(default="", description="Workspace archive bases are created in")
    date_field: str = Field(default="Date")
    flag_field: str = Field(default="Archived")

    @field_validator("frequency", mode="before")
    @classmethod
    def _parse_frequency(cls, value: Any) -> Frequency:
        return Frequency.parse(value)


class AirtableSettings(BaseModel):
    api_url: str = Field(default="https://api.airtable.com")
    web_url: str = Field(default="https://airtable.com")
    min_request_interval_seconds: float = Field(default=0.2, ge=0.0, le=10.0)

    @field_validator("api_url", "web_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        return normalize_base_url(value)


class ExecutionSettings(BaseModel):
    request_timeout_seconds: float = Field(default=30.0, ge=0.1, le=600.0)
    max_retries: int = Field(default=2, ge=0, le=10)
    lock_ttl_seconds: int = Field(default=6 * 3600, ge=60)


class StorageSettings(BaseModel):
    backend: Literal["sqlite", "airtable"] = Field(default="sqlite")
    sqlite_path: str = Field(default="./data/auto_archive.sqlite")
    sqlite_wal: bool = Field(default=True)


class Settings(BaseModel):
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    airtable: AirtableSettings = Field(default_factory=AirtableSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


ENV_KEYS = {
    "config_path": "ARCHIVE_CONFIG_PATH",
    "base_id": "ARCHIVE_BASE_ID",
    "table": "ARCHIVE_TABLE",
    "api_key": "AIRTABLE_API_KEY",
    "frequency": "ARCHIVE_FREQUENCY",
    "workspace_id": "ARCHIVE_WORKSPACE_ID",
    "date_field": "ARCHIVE_DATE_FIELD",
    "flag_field": "ARCHIVE_FLAG_FIELD",
    "api_url": "AIRTABLE_API_URL",
    "web_url": "AIRTABLE_WEB_URL",
    "min_request_interval": "AIRTABLE_MIN_REQUEST_INTERVAL",
    "request_timeout": "REQUEST_TIMEOUT_SECONDS",
    "max_retries": "ARCHIVE_MAX_RETRIES",
    "lock_ttl": "ARCHIVE_LOCK_TTL_SECONDS",
    "storage_backend": "STORAGE_BACKEND",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}

_REQUIRED_ARCHIVE_KEYS = ("base_id", "table", "api_key", "workspace_id")

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = _project_root() / candidate
    return str(candidate.resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_job_file(path: str) -> dict[str, Any]:
    """Read the ``archive`` section of a YAML job file."""
    job_path = Path(path)
    if not job_path.exists():
        raise FileNotFoundError(f"Archive config file not found: {job_path}")
    with job_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Archive config file must contain a mapping: {job_path}")
    section = data.get("archive", data)
    if not isinstance(section, dict):
        raise ValueError(f"'archive' section must be a mapping: {job_path}")
    return section


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    defaults = ArchiveSettings()
    config_path = os.getenv(ENV_KEYS["config_path"])
    job: dict[str, Any] = load_job_file(_resolve_path(config_path)) if config_path else {}
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    def archive_value(name: str) -> Any:
        return os.getenv(ENV_KEYS[name]) or job.get(name, getattr(defaults, name))

    settings_data: dict[str, object] = {
        "archive": {
            name: archive_value(name)
            for name in (
                "base_id",
                "table",
                "api_key",
                "frequency",
                "workspace_id",
                "date_field",
                "flag_field",
            )
        },
        "airtable": {
            "api_url": os.getenv(ENV_KEYS["api_url"], AirtableSettings().api_url),
            "web_url": os.getenv(ENV_KEYS["web_url"], AirtableSettings().web_url),
            "min_request_interval_seconds": _env_float(
                ENV_KEYS["min_request_interval"],
                AirtableSettings().min_request_interval_seconds,
            ),
        },
        "execution": {
            "request_timeout_seconds": _env_float(
                ENV_KEYS["request_timeout"],
                ExecutionSettings().request_timeout_seconds,
            ),
            "max_retries": _env_int(ENV_KEYS["max_retries"], ExecutionSettings().max_retries),
            "lock_ttl_seconds": _env_int(
                ENV_KEYS["lock_ttl"], ExecutionSettings().lock_ttl_seconds
            ),
        },
        "storage": {
            "backend": os.getenv(ENV_KEYS["storage_backend"], StorageSettings().backend),
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings


def require_archive_settings(settings: Settings) -> None:
    """Raise if the job cannot run without the missing archive settings."""
    missing = [
        ENV_KEYS[name] for name in _REQUIRED_ARCHIVE_KEYS if not getattr(settings.archive, name)
    ]
    if missing:
        raise RuntimeError(f"Missing archive settings: {', '.join(missing)}")
