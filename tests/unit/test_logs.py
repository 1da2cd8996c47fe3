"""Tests for configure_logging."""

from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from recall.logs import configure_logging


@pytest.fixture(autouse=True)
def _restore_recall_logger():
    logger = logging.getLogger("recall")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_records_reach_rich_console() -> None:
    buffer = io.StringIO()
    configure_logging(logging.INFO, Console(file=buffer, width=120))

    logging.getLogger("recall.ingest.pipeline").info("Batch %d stored", 4)

    assert "Batch 4 stored" in buffer.getvalue()


def test_level_filters_records() -> None:
    buffer = io.StringIO()
    configure_logging(logging.WARNING, Console(file=buffer, width=120))

    logging.getLogger("recall.store").info("hidden")

    assert buffer.getvalue() == ""


def test_reconfiguring_replaces_handler() -> None:
    configure_logging(logging.INFO, Console(file=io.StringIO()))
    configure_logging(logging.DEBUG, Console(file=io.StringIO()))

    logger = logging.getLogger("recall")
    assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logging.getLogger("LiteLLM").level == logging.WARNING
