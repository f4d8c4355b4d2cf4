"""Entrypoint for a single archive run."""

from __future__ import annotations

import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

from auto_archive import __version__
from auto_archive.app import build_app_context
from auto_archive.archive.context import RunContext
from auto_archive.archive.run_lock import RunLockError, hold_run_lock, lock_key_for
from auto_archive.config import Settings, load_settings, require_archive_settings
from auto_archive.domain.models import RunStatus
from auto_archive.logging_utils import bind_run_id, configure_logging, get_logger
from auto_archive.utils.masking import redact_sensitive_fields

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_LOCKED = 2


def run_once(settings: Settings | None = None) -> int:
    """Run one archive pass and return the process exit code."""
    settings = settings or load_settings()
    logger = get_logger("auto_archive")
    require_archive_settings(settings)

    logger.info("auto-archive v%s", __version__)
    logger.debug("Settings: %s", redact_sensitive_fields(settings.model_dump(mode="json")))

    app = build_app_context(settings)
    try:
        context = RunContext.start(settings.archive.frequency)
        lock_key = lock_key_for(settings.archive.base_id, settings.archive.table)
        with bind_run_id(context.run_id), hold_run_lock(
            app.store, lock_key, context.run_id, settings.execution.lock_ttl_seconds
        ):
            app.prepare()
            entry = app.pipeline.run(context)
    except RunLockError as exc:
        logger.warning("%s; skipping this run", exc)
        return EXIT_LOCKED
    finally:
        app.close()

    return EXIT_FAILURE if entry.status is RunStatus.FAILURE else EXIT_OK


def run_entrypoint() -> None:
    configure_logging()
    try:
        code = run_once()
    except Exception:
        get_logger("auto_archive").exception("Archive run aborted")
        code = EXIT_FAILURE
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
