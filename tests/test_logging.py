"""Tests for structlog configuration."""

import logging
import logging.handlers

from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.utils.logging import setup_logging


def test_setup_logging_adds_rotating_file_handler(tmp_path):
    log_file = tmp_path / "logs" / "tracker.log"
    config = TrackerConfig(_env_file=None, log_file=str(log_file), log_format="json", log_level="DEBUG")
    root = logging.getLogger()
    before = list(root.handlers)

    try:
        setup_logging(config)

        added = [h for h in root.handlers if h not in before]
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in added)
        assert log_file.parent.is_dir()
    finally:
        for handler in [h for h in root.handlers if h not in before]:
            root.removeHandler(handler)
            handler.close()


def test_setup_logging_without_file(tmp_path):
    config = TrackerConfig(_env_file=None, log_file=None)
    root = logging.getLogger()
    before = list(root.handlers)

    setup_logging(config)

    assert not any(isinstance(h, logging.handlers.RotatingFileHandler)
                   for h in root.handlers if h not in before)
