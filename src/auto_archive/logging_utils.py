"""Logging setup for archive runs.

Every line carries the id of the run in progress (``-`` outside a run), so
the output of overlapping scheduled runs can be told apart in one log file.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

from auto_archive.config import load_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(run_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
NO_RUN_ID = "-"

# httpx logs every request at INFO, which would echo each batch call.
_NOISY_LOGGERS = ("httpx", "httpcore")

_current_run_id: ContextVar[str] = ContextVar("archive_run_id", default=NO_RUN_ID)

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)


class RunIdFilter(logging.Filter):
    """Stamp records with the run id bound by :func:`bind_run_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run_id.get()
        return True


@contextmanager
def bind_run_id(run_id: str) -> Iterator[None]:
    token = _current_run_id.set(run_id)
    try:
        yield
    finally:
        _current_run_id.reset(token)


def _build_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(RunIdFilter())
    return handler


def configure_logging() -> None:
    """Log to stderr and, when ``LOG_FILE`` is set, to that file as well."""
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers = [_build_handler(logging.StreamHandler(sys.stderr))]
    file_error: OSError | None = None
    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                _build_handler(logging.FileHandler(settings.logging.file, encoding="utf-8"))
            )
        except OSError as exc:
            file_error = exc

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if file_error is not None:
        _logger.warning(
            "Cannot write log file %s, logging to stderr only: %s",
            settings.logging.file,
            file_error,
        )

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
