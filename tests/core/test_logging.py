"""Tests for logging setup."""
import json
import logging

import pytest
import structlog

from facematch.core.logging import get_logger, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_logs_go_to_stderr(restore_logging, capsys):
    setup_logging(level="info", json_logs=True)
    get_logger("facematch.tests").info("Photo compared", photo_id="photo-1", similarity=0.91)

    captured = capsys.readouterr()
    assert captured.out == ""
    record = json.loads(captured.err.strip().splitlines()[-1])
    assert record["event"] == "Photo compared"
    assert record["photo_id"] == "photo-1"
    assert record["level"] == "info"
    assert record["logger"] == "facematch.tests"


def test_level_and_noisy_loggers(restore_logging):
    setup_logging(level="DEBUG", json_logs=False)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("botocore").level == logging.WARNING
