"""Opt-in log output for the bottle core.

Package modules only create ``logging.getLogger(__name__)`` loggers under
``bottlecore``; nothing is emitted until the embedding application calls
:func:`setup_logging`. DEBUG shows per-bottle scaling steps and comparison
summaries, WARNING shows fallbacks and solver non-convergence.
"""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO, Union

LOGGER_NAME = "bottlecore"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"


@dataclass(frozen=True)
class LogSettings:
    level: Union[int, str] = logging.INFO  # int or level name, e.g. "DEBUG"
    log_file: Union[str, Path, None] = None
    append: bool = False  # file mode "a" instead of "w"
    stream: TextIO | None = None  # sys.stdout when None


def _build_handlers(settings: LogSettings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(settings.stream or sys.stdout)]
    if settings.log_file is not None:
        path = Path(settings.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, mode="a" if settings.append else "w", encoding="utf-8"))
    return handlers


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Union[str, Path, None] = None,
    *,
    settings: LogSettings | None = None,
) -> logging.Logger:
    """Attach console (and optional file) output to the ``bottlecore`` logger.

    ``settings`` wins over ``level``/``log_file`` when given. Calling this again
    replaces the previous handlers.
    """
    if settings is None:
        settings = LogSettings(level=level, log_file=log_file)

    logger = logging.getLogger(LOGGER_NAME)
    _drop_handlers(logger)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(settings):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(settings.level)
    return logger
