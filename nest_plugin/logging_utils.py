from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

SUBMISSION_LOGGER_NAME = "NestTracker.Submissions"
SUBMISSION_LOG_FILE = "nest-submissions.log"
SUBMISSION_LOG_MAX_BYTES = 256 * 1024


def build_submission_logger(log_dir: Path, *, retention: int, max_bytes: int = SUBMISSION_LOG_MAX_BYTES) -> logging.Logger:
    """Return a logger that appends submitted outcomes to a rotating file.

    ``retention`` counts the live file plus its backups. Handlers from a
    previous call are closed and replaced.
    """
    logger = logging.getLogger(SUBMISSION_LOGGER_NAME)
    close_submission_logger(logger)
    retention = max(1, retention)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / SUBMISSION_LOG_FILE,
        maxBytes=max_bytes,
        backupCount=max(0, retention - 1),
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(message)s", "%Y-%m-%dT%H:%M:%S"))
    handler.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def close_submission_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
