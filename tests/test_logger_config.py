# -*- coding: utf-8 -*-
"""
Tests for logging setup.
"""

import logging

import pytest
from rich.logging import RichHandler

from typed_sql import config
from typed_sql.logger_config import LOGGER_NAME, get_logger, setup_logger


@pytest.fixture(autouse=True)
def _detach_handlers():
    yield
    logger = get_logger()
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestSetupLogger:
    """Tests for setup_logger()."""

    def test_console_level_from_environment(self, monkeypatch):
        monkeypatch.setenv(config.ENV_LOG_LEVEL, "debug")

        logger = setup_logger()

        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.handlers[0].level == logging.DEBUG

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "typed_sql.log"

        logger = setup_logger(level="ERROR", log_file=log_file)
        logger.debug("written to file only")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        assert "written to file only" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_does_not_duplicate(self):
        setup_logger()
        setup_logger()
        assert len(get_logger().handlers) == 1

    def test_exported_from_package(self):
        import typed_sql

        assert typed_sql.setup_logger is setup_logger
        assert "setup_logger" in typed_sql.__all__

    def test_module_loggers_are_children(self):
        assert logging.getLogger("typed_sql.compiler").parent is get_logger()
