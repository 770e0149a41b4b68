"""
Unified logging system
Console, rotating application/error files and a separate migration journal
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, List, Optional

from planner_sync.config.loader import get_config

# Logger tree whose records also go to the migration journal
MIGRATION_LOGGER = "planner_sync.migration"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)
MIGRATION_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def parse_size(size: Any) -> int:
    """Parse a file size such as "10MB", "512KB" or a plain byte count"""
    text = str(size).strip().upper()
    for suffix, factor in (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)):
        if text.endswith(suffix):
            return int(float(text[: -len(suffix)]) * factor)
    return int(text)


class LoggerManager:
    """Log manager

    Handlers are attached to the root logger, except the migration journal
    which only receives ``planner_sync.migration.*`` records (INFO and up).
    """

    def __init__(self):
        self.logs_dir: Optional[Path] = None
        self._handlers: List[logging.Handler] = []
        self._migration_handler: Optional[logging.Handler] = None
        self.configure()

    def configure(self) -> None:
        """(Re)read the logging section and replace the handlers"""
        config = get_config()

        log_level = config.get("logging.level", "INFO")
        self.logs_dir = Path(config.get("logging.logs_dir", "./logs"))
        max_bytes = parse_size(config.get("logging.max_file_size", "10MB"))
        backup_count = int(config.get("logging.backup_count", 5))
        migration_log = config.get("logging.migration_log", "migration.log")

        self.logs_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
        root_logger.handlers.clear()
        self._close(self._handlers)
        self._handlers = []

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)
        self._handlers.append(console_handler)

        file_format = logging.Formatter(FILE_FORMAT)
        for filename, level in (
            ("planner_sync.log", logging.DEBUG),
            ("error.log", logging.ERROR),
        ):
            handler = self._rotating(filename, max_bytes, backup_count)
            handler.setLevel(level)
            handler.setFormatter(file_format)
            root_logger.addHandler(handler)
            self._handlers.append(handler)

        migration_logger = logging.getLogger(MIGRATION_LOGGER)
        if self._migration_handler is not None:
            migration_logger.removeHandler(self._migration_handler)
            self._migration_handler.close()
            self._migration_handler = None
        if migration_log:
            handler = self._rotating(migration_log, max_bytes, backup_count)
            handler.setLevel(logging.INFO)
            handler.setFormatter(logging.Formatter(MIGRATION_FORMAT))
            migration_logger.addHandler(handler)
            self._migration_handler = handler

    def _rotating(
        self, filename: str, max_bytes: int, backup_count: int
    ) -> logging.handlers.RotatingFileHandler:
        return logging.handlers.RotatingFileHandler(
            self.logs_dir / filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )

    @staticmethod
    def _close(handlers: List[logging.Handler]) -> None:
        for handler in handlers:
            handler.close()


# Global log manager instance (lazy initialization to avoid circular imports)
_logger_manager: Optional[LoggerManager] = None


def get_logger(name: str) -> logging.Logger:
    """Module-level logger; handlers come from ``setup_logging()``"""
    return logging.getLogger(name)


def setup_logging() -> LoggerManager:
    """Setup logging system, re-reading the config on later calls"""
    global _logger_manager

    if _logger_manager is None:
        _logger_manager = LoggerManager()
    else:
        _logger_manager.configure()
    return _logger_manager
