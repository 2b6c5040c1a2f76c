from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

_ROOT_LOGGER_NAME = "storagecore"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_redaction_secrets: set[str] = set()


class RedactingFilter(logging.Filter):
    """Replaces configured secrets in log messages with `***`."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _redaction_secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in _redaction_secrets:
            redacted = redacted.replace(secret, "***")
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def set_redaction_secret(secret: str | None) -> None:
    if secret:
        _redaction_secrets.add(secret)


@dataclass(frozen=True, slots=True)
class LoggingState:
    level: int
    handlers: list[logging.Handler]
    propagate: bool


def _level_for_verbosity(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(
    *,
    verbosity: int,
    log_file: Path | None = None,
    secret_for_redaction: str | None = None,
) -> LoggingState:
    """
    Attach stderr (and optionally file) handlers to the package logger.

    Returns the previous logger state for `restore_logging`.
    """
    set_redaction_secret(secret_for_redaction)
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    previous = LoggingState(
        level=logger.level, handlers=list(logger.handlers), propagate=logger.propagate
    )

    level = _level_for_verbosity(verbosity)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logger.handlers = []
    for handler in handlers:
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(RedactingFilter())
        if handler.level == logging.NOTSET:
            handler.setLevel(level)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    logger.propagate = False
    return previous


def restore_logging(state: LoggingState) -> None:
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        if handler not in state.handlers:
            handler.close()
    logger.handlers = list(state.handlers)
    logger.setLevel(state.level)
    logger.propagate = state.propagate
