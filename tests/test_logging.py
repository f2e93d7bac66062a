"""Tests for logging setup."""

import logging

import pytest

from rapport.utils.logging import LogConfig, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    rapport_level = logging.getLogger("rapport").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("rapport").setLevel(rapport_level)


class TestGetLogger:
    """Tests for logger naming."""

    def test_package_modules_keep_their_name(self):
        """Test that package module loggers are used as named."""
        assert get_logger("rapport.tools.queries").name == "rapport.tools.queries"

    def test_other_names_join_the_hierarchy(self):
        """Test that scripts log under the rapport logger."""
        assert get_logger("__main__").name == "rapport.__main__"


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels_applied(self):
        """Test that the package level and library level are set separately."""
        setup_logging(LogConfig(level="debug", library_level="error"))

        assert logging.getLogger("rapport").level == logging.DEBUG
        assert logging.getLogger().level == logging.ERROR
        assert get_logger("rapport.services.controller").isEnabledFor(logging.DEBUG)

    def test_quiet_loggers_held_at_warning(self):
        """Test that noisy dependency loggers stay at WARNING."""
        setup_logging(LogConfig(library_level="DEBUG"))

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_config_from_environment(self, monkeypatch):
        """Test that levels are read from the environment."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LIBRARY_LOG_LEVEL", "ERROR")

        config = LogConfig.from_env()

        assert config.level == "DEBUG"
        assert config.library_level == "ERROR"
