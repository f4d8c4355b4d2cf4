from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from auto_archive import logging_utils


def _settings(log_file: str | None, level: str = "INFO") -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level=level, file=log_file),
    )


@patch("auto_archive.logging_utils.load_settings")
@patch("auto_archive.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1


@patch("auto_archive.logging_utils.load_settings")
@patch("auto_archive.logging_utils.logging.basicConfig")
def test_configure_logging_adds_file_handler(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    log_file = tmp_path / "logs" / "archive.log"
    mock_load_settings.return_value = _settings(str(log_file), level="debug")

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["level"] == logging.DEBUG
    handlers = kwargs["handlers"]
    assert len(handlers) == 2
    assert isinstance(handlers[1], logging.FileHandler)
    assert log_file.parent.is_dir()
    for handler in handlers:
        handler.close()


@patch("auto_archive.logging_utils.load_settings")
@patch("auto_archive.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("auto_archive.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    mock_load_settings.return_value = _settings(str(tmp_path / "app.log"))

    logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


@patch("auto_archive.logging_utils.load_settings")
@patch("auto_archive.logging_utils.logging.basicConfig")
def test_configure_logging_quiets_http_loggers(
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None, level="DEBUG")

    logging_utils.configure_logging()

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    logging_utils.get_logger("test.other")
    assert logger.name == "test.logger"
    assert calls["count"] == 1


def test_run_id_filter_stamps_bound_run() -> None:
    run_filter = logging_utils.RunIdFilter()

    def stamped() -> str:
        record = logging.LogRecord("auto_archive", logging.INFO, __file__, 1, "msg", None, None)
        run_filter.filter(record)
        return record.run_id

    assert stamped() == logging_utils.NO_RUN_ID
    with logging_utils.bind_run_id("Run_1700000000000"):
        assert stamped() == "Run_1700000000000"
    assert stamped() == logging_utils.NO_RUN_ID


@patch("auto_archive.logging_utils.load_settings")
@patch("auto_archive.logging_utils.logging.basicConfig")
def test_configured_handlers_carry_run_id(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    handler = mock_basic_config.call_args.kwargs["handlers"][0]
    record = logging.LogRecord("auto_archive.pipeline", logging.INFO, __file__, 1, "go", None, None)
    with logging_utils.bind_run_id("Run_42"):
        assert handler.filter(record)
    assert "| Run_42 | auto_archive.pipeline | go" in handler.format(record)
