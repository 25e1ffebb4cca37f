"""Tests for logging setup."""

import logging

import pytest
from rich.logging import RichHandler

from mockify.logger import configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_rich_handler_by_default():
    configure_logging(logging.DEBUG)
    root = logging.getLogger()

    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], RichHandler)


def test_plain_stream_handler():
    configure_logging(logging.INFO, rich_output=False)
    (handler,) = logging.getLogger().handlers

    assert type(handler) is logging.StreamHandler
    assert "%(levelname)s" in handler.formatter._fmt


def test_replaces_existing_handlers():
    configure_logging()
    configure_logging()
    assert len(logging.getLogger().handlers) == 1


def test_quiets_third_party_loggers():
    configure_logging(logging.DEBUG)
    assert logging.getLogger("chromadb").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
