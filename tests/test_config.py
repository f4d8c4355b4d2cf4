from __future__ import annotations

import pytest

from auto_archive import config
from auto_archive.domain.models import Frequency


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    for key in config.ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "db" / "archive.sqlite"))
    return monkeypatch


def test_resolve_path_relative_to_project_root() -> None:
    expected = str((config._project_root() / "data" / "x.sqlite").resolve())
    assert config._resolve_path("./data/x.sqlite") == expected


def test_resolve_path_keeps_absolute(tmp_path) -> None:
    assert config._resolve_path(str(tmp_path / "a.log")) == str((tmp_path / "a.log").resolve())


def test_env_int_uses_default_for_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_INT_VALUE", "")
    assert config._env_int("TEST_INT_VALUE", 7) == 7


def test_env_int_invalid_value_returns_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_INT_INVALID", "not_a_number")
    assert config._env_int("TEST_INT_INVALID", 42) == 42


def test_env_float_invalid_value_returns_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_FLOAT_INVALID", "not_a_float")
    assert config._env_float("TEST_FLOAT_INVALID", 2.5) == 2.5


def test_env_bool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_BOOL", "Yes")
    assert config._env_bool("TEST_BOOL", False) is True
    monkeypatch.setenv("TEST_BOOL", "off")
    assert config._env_bool("TEST_BOOL", True) is False
    monkeypatch.delenv("TEST_BOOL")
    assert config._env_bool("TEST_BOOL", True) is True


def test_defaults(clean_env, tmp_path) -> None:
    settings = config.load_settings()

    assert settings.archive.frequency is Frequency.MONTHLY
    assert settings.archive.date_field == "Date"
    assert settings.archive.flag_field == "Archived"
    assert settings.airtable.api_url == "https://api.airtable.com"
    assert settings.execution.max_retries == 2
    assert settings.storage.backend == "sqlite"
    assert settings.storage.sqlite_path == str((tmp_path / "db" / "archive.sqlite").resolve())
    assert (tmp_path / "db").is_dir()
    assert settings.logging.file is None


def test_settings_are_cached(clean_env) -> None:
    assert config.load_settings() is config.load_settings()


def test_env_overrides(clean_env) -> None:
    clean_env.setenv("ARCHIVE_BASE_ID", "appMaster")
    clean_env.setenv("ARCHIVE_TABLE", "Orders")
    clean_env.setenv("AIRTABLE_API_KEY", "patSecret")
    clean_env.setenv("ARCHIVE_FREQUENCY", "6m")
    clean_env.setenv("ARCHIVE_WORKSPACE_ID", "wspArchive")
    clean_env.setenv("AIRTABLE_WEB_URL", "HTTPS://airtable.example.com/")
    clean_env.setenv("ARCHIVE_MAX_RETRIES", "4")
    clean_env.setenv("STORAGE_BACKEND", "airtable")

    settings = config.load_settings()

    assert settings.archive.base_id == "appMaster"
    assert settings.archive.frequency is Frequency.SEMIANNUAL
    assert settings.airtable.web_url == "https://airtable.example.com"
    assert settings.execution.max_retries == 4
    assert settings.storage.backend == "airtable"
    config.require_archive_settings(settings)


def test_yaml_job_file_with_env_precedence(clean_env, tmp_path) -> None:
    job = tmp_path / "job.yaml"
    job.write_text(
        "archive:\n"
        "  base_id: appFromFile\n"
        "  table: Orders\n"
        "  frequency: quarterly\n"
        "  date_field: Closed On\n",
        encoding="utf-8",
    )
    clean_env.setenv("ARCHIVE_CONFIG_PATH", str(job))
    clean_env.setenv("ARCHIVE_TABLE", "Invoices")

    settings = config.load_settings()

    assert settings.archive.base_id == "appFromFile"
    assert settings.archive.table == "Invoices"
    assert settings.archive.frequency is Frequency.QUARTERLY
    assert settings.archive.date_field == "Closed On"


def test_load_job_file_errors(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        config.load_job_file(str(tmp_path / "missing.yaml"))

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must contain a mapping"):
        config.load_job_file(str(listing))


def test_load_job_file_without_section(tmp_path) -> None:
    flat = tmp_path / "flat.yaml"
    flat.write_text("table: Orders\n", encoding="utf-8")
    assert config.load_job_file(str(flat)) == {"table": "Orders"}


def test_invalid_frequency_raises_runtime_error(clean_env) -> None:
    clean_env.setenv("ARCHIVE_FREQUENCY", "weekly")

    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_invalid_backend_raises_runtime_error(clean_env) -> None:
    clean_env.setenv("STORAGE_BACKEND", "postgres")

    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_settings()


def test_require_archive_settings_lists_missing_keys(clean_env) -> None:
    clean_env.setenv("ARCHIVE_BASE_ID", "appMaster")

    with pytest.raises(RuntimeError) as excinfo:
        config.require_archive_settings(config.load_settings())

    message = str(excinfo.value)
    assert "ARCHIVE_TABLE" in message
    assert "AIRTABLE_API_KEY" in message
    assert "ARCHIVE_WORKSPACE_ID" in message
    assert "ARCHIVE_BASE_ID" not in message
