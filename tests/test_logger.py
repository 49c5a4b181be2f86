"""
Tests for the logging infrastructure.
"""

import logging
from unittest import mock

import pytest

from bwhmm.config import set_config, reset_config
from bwhmm.logger import (
    ROOT_LOGGER_NAME,
    configure_logging,
    get_logger,
    set_log_level,
    enable_file_logging,
    disable_file_logging
)


@pytest.fixture
def restore_level():
    yield
    disable_file_logging()
    set_log_level('INFO')


def test_get_logger_prefixes_names():
    """Test that component loggers live under the package root logger."""
    assert get_logger('trainer').name == 'bwhmm.trainer'
    assert get_logger('bwhmm.hmm.model').name == 'bwhmm.hmm.model'
    assert get_logger(ROOT_LOGGER_NAME).name == ROOT_LOGGER_NAME


def test_get_logger_is_cached():
    """Test that repeated lookups return the same logger."""
    assert get_logger('cached') is get_logger('cached')


def test_root_logger_does_not_propagate():
    """Test that messages aren't duplicated through the Python root logger."""
    assert logging.getLogger(ROOT_LOGGER_NAME).propagate is False


def test_set_log_level(restore_level):
    """Test that the level applies to the root logger and its handlers."""
    set_log_level('warning')

    root = logging.getLogger(ROOT_LOGGER_NAME)
    assert root.level == logging.WARNING
    assert all(handler.level == logging.WARNING for handler in root.handlers)


def test_file_logging(temp_dir, restore_level):
    """Test enabling and disabling the file handler."""
    log_file = temp_dir / "logs" / "bwhmm.log"
    root = logging.getLogger(ROOT_LOGGER_NAME)
    set_log_level('INFO')

    enable_file_logging(str(log_file))
    enable_file_logging(str(log_file))

    file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1

    get_logger('test').info("written to file")
    file_handlers[0].flush()
    assert "written to file" in log_file.read_text()

    disable_file_logging()
    assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)


def test_configure_logging_follows_config(temp_dir, restore_level):
    """Test that handlers are rebuilt from the logging config section."""
    log_file = temp_dir / "configured.log"
    set_config('logging', 'level', 'WARNING')
    set_config('logging', 'file_logging', True)
    set_config('logging', 'log_file', str(log_file))

    configure_logging()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    assert root.level == logging.WARNING
    assert sum(isinstance(h, logging.FileHandler) for h in root.handlers) == 1
    assert log_file.exists()

    reset_config()
    configure_logging()
    assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)


def test_unknown_level_falls_back_to_info(restore_level):
    """Test that an unrecognised level name is reported and replaced by INFO."""
    root = logging.getLogger(ROOT_LOGGER_NAME)

    with mock.patch.object(root, 'warning') as warning:
        set_log_level('chatty')

    assert root.level == logging.INFO
    warning.assert_called_once()
    assert "chatty" in warning.call_args[0][0]


def test_configure_logging_with_unknown_level(restore_level):
    """Test that a bad logging.level in the configuration doesn't break setup."""
    set_config('logging', 'level', 'LOUD')

    configure_logging()

    assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.INFO
    reset_config()
    configure_logging()
