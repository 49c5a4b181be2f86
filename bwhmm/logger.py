"""
Logging infrastructure for bwhmm.

All library loggers are children of the ``bwhmm`` logger, which owns a
stdout handler and, when enabled, a file handler. The handlers are built
from the ``logging`` configuration section and can be rebuilt after the
configuration changes (for example once the CLI has loaded --config).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import get_config

ROOT_LOGGER_NAME = 'bwhmm'


def _level(name: Optional[str]) -> Optional[int]:
    level = logging.getLevelName(str(name or 'INFO').upper())
    return level if isinstance(level, int) else None


class BWHMMLogger:
    """Owns the handlers of the ``bwhmm`` logger tree."""

    def __init__(self):
        self._loggers = {}
        self.configure()

    @property
    def root(self) -> logging.Logger:
        return logging.getLogger(ROOT_LOGGER_NAME)

    def configure(self):
        """(Re)build handlers from the current ``logging`` config section."""
        formatter = logging.Formatter(get_config('logging', 'format'))

        root = self.root
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if isinstance(handler, logging.FileHandler):
                handler.close()

        root.propagate = False

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        self.set_level(get_config('logging', 'level'))

        if get_config('logging', 'file_logging'):
            self.enable_file_logging()

    def get_logger(self, name: str) -> logging.Logger:
        """Logger for a component, placed under the ``bwhmm`` namespace."""
        if name != ROOT_LOGGER_NAME and not name.startswith(f'{ROOT_LOGGER_NAME}.'):
            name = f'{ROOT_LOGGER_NAME}.{name}'

        if name not in self._loggers:
            self._loggers[name] = logging.getLogger(name)
        return self._loggers[name]

    def set_level(self, level: str):
        """Apply a level name to the root logger and its handlers; unknown names mean INFO."""
        log_level = _level(level)
        unknown = log_level is None
        if unknown:
            log_level = logging.INFO

        self.root.setLevel(log_level)
        for handler in self.root.handlers:
            handler.setLevel(log_level)

        if unknown:
            self.root.warning(f"Unknown log level '{level}', using INFO")

    def enable_file_logging(self, log_file: Optional[str] = None):
        """Add a file handler unless one is already attached."""
        root = self.root
        if any(isinstance(h, logging.FileHandler) for h in root.handlers):
            return

        log_path = Path(log_file or get_config('logging', 'log_file') or 'bwhmm.log')
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(root.level)
        file_handler.setFormatter(logging.Formatter(get_config('logging', 'format')))
        root.addHandler(file_handler)

    def disable_file_logging(self):
        root = self.root
        for handler in [h for h in root.handlers if isinstance(h, logging.FileHandler)]:
            root.removeHandler(handler)
            handler.close()


_logger_manager = BWHMMLogger()


def get_logger(name: str = 'main') -> logging.Logger:
    """Get a logger instance for the specified module/component."""
    return _logger_manager.get_logger(name)


def configure_logging():
    """Rebuild handlers from the current configuration."""
    _logger_manager.configure()


def set_log_level(level: str):
    """Set the level of the bwhmm logger and all its handlers."""
    _logger_manager.set_level(level)


def enable_file_logging(log_file: Optional[str] = None):
    """Enable file logging globally."""
    _logger_manager.enable_file_logging(log_file)


def disable_file_logging():
    """Disable file logging globally."""
    _logger_manager.disable_file_logging()
