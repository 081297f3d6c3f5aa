from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterator

import pytest

from bottlecore.logging_config import LOGGER_NAME, LogSettings, setup_logging


@pytest.fixture
def clean_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger(LOGGER_NAME)
    saved_level = logger.level
    yield logger
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(saved_level)


def test_repeated_setup_does_not_stack_handlers(clean_logger: logging.Logger) -> None:
    setup_logging()
    logger = setup_logging(logging.DEBUG)
    assert logger is clean_logger
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG


def test_file_handler(clean_logger: logging.Logger, tmp_path: Path) -> None:
    log_file = tmp_path / "bottlecore.log"
    logger = setup_logging(logging.INFO, str(log_file))
    assert len(logger.handlers) == 2

    logging.getLogger("bottlecore.series").warning("scaled %d bottles", 3)
    for handler in logger.handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "bottlecore.series - WARNING - scaled 3 bottles" in text


def test_level_name_and_custom_stream(clean_logger: logging.Logger) -> None:
    stream = io.StringIO()
    logger = setup_logging(settings=LogSettings(level="DEBUG", stream=stream))
    assert logger.level == logging.DEBUG

    logging.getLogger("bottlecore.coverage").debug("compared %s", "A vs B")
    assert "bottlecore.coverage - DEBUG - compared A vs B" in stream.getvalue()


def test_append_keeps_earlier_lines(clean_logger: logging.Logger, tmp_path: Path) -> None:
    log_file = tmp_path / "nested" / "run.log"
    setup_logging(settings=LogSettings(log_file=log_file, stream=io.StringIO()))
    clean_logger.info("first")
    setup_logging(settings=LogSettings(log_file=log_file, append=True, stream=io.StringIO()))
    clean_logger.info("second")
    for handler in clean_logger.handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert [line.rsplit(" - ", 1)[-1] for line in lines] == ["first", "second"]


def test_messages_below_level_are_dropped(clean_logger: logging.Logger) -> None:
    stream = io.StringIO()
    setup_logging(settings=LogSettings(level=logging.WARNING, stream=stream))
    logging.getLogger("bottlecore.series").info("hidden")
    logging.getLogger("bottlecore.series").warning("shown")
    assert "hidden" not in stream.getvalue()
    assert "shown" in stream.getvalue()
