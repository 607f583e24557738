"""
Centralized logger factory for metascrape.

`LoggerManager` hands out one configured `logging.Logger` per name: a
colorlog console handler, plus a file handler under the `TaskPaths` log
root that writes plain text or JSON lines through `JsonLogFormatter`.
"""

import json
import logging
import sys
from typing import Dict, Optional

from colorlog import ColoredFormatter

from metascrape.utils.task_paths import TaskPaths


CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


class LoggerManager:
    """
    Factory for one `logging.Logger` per component name.

    Handlers are attached on first use only. Propagation is off so scraper
    and registry lines are not repeated by ancestor loggers.
    """

    _loggers: Dict[str, logging.Logger] = {}

    @classmethod
    def get_logger(
        cls,
        name: str,
        level: str = "DEBUG",
        use_json: bool = False,
        task_paths: Optional[TaskPaths] = None,
    ) -> logging.Logger:
        """
        Retrieve or create the logger for `name`.

        Args:
            name: Component name ("cli", "config", "metascrape"); also the
                log file name
            level: Logging level threshold ("DEBUG", "INFO", ...)
            use_json: Write the file log as JSON lines
            task_paths: Where log files go (``logs/`` by default)
        """
        if name in cls._loggers:
            return cls._loggers[name]

        logger = logging.getLogger(name)
        logger.setLevel(level.upper())
        logger.propagate = False

        log_file = (task_paths or TaskPaths()).get_log_path(name)
        logger.addHandler(cls._file_handler(log_file, level, use_json))
        logger.addHandler(cls._console_handler(level))

        cls._loggers[name] = logger
        return logger

    @classmethod
    def reset(cls) -> None:
        """Close and forget every logger created so far."""
        for logger in cls._loggers.values():
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)
        cls._loggers.clear()

    @staticmethod
    def _file_handler(filepath: str, level: str, use_json: bool) -> logging.Handler:
        handler = logging.FileHandler(filepath, encoding="utf-8")
        handler.setLevel(level.upper())
        handler.setFormatter(JsonLogFormatter() if use_json else logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
        return handler

    @staticmethod
    def _console_handler(level: str) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level.upper())
        handler.setFormatter(
            ColoredFormatter(fmt="%(log_color)s" + CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
        )
        return handler


class JsonLogFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line.

    Example Output:
        {
            "timestamp": "2026-10-19 13:12:01",
            "level": "ERROR",
            "logger": "metascrape",
            "message": "Scraper dblp failed for 'Attention Is All You Need'",
            "source_tag": "scraperRegistry",
            "notify_user": false
        }

    Extra fields come from `extra={"extra_data": {...}}` in logging calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_data"):
            log_record.update(record.extra_data)
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)
