import json
import logging
import os
import sys

import pytest
from colorlog import ColoredFormatter

from metascrape.utils.logger import JsonLogFormatter, LoggerManager
from metascrape.utils.task_paths import TaskPaths


@pytest.fixture(scope="function")
def paths(tmp_path):
    """Per-test log root; loggers are closed and forgotten afterwards."""
    LoggerManager.reset()
    yield TaskPaths(logs_root="logs", base_dir=tmp_path)
    LoggerManager.reset()


def _close_file_handlers(logger):
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            handler.close()


def test_get_logger_returns_same_instance(paths):
    """get_logger returns the same logger instance for the same name."""
    logger1 = LoggerManager.get_logger("test_singleton", task_paths=paths)
    logger2 = LoggerManager.get_logger("test_singleton", task_paths=paths)
    assert logger1 is logger2
    assert len(logger1.handlers) == 2


def test_console_and_file_handlers_added(paths):
    """A colored stdout handler and a file handler under the log root are attached."""
    logger = LoggerManager.get_logger("registry", task_paths=paths)

    console = next(h for h in logger.handlers if not isinstance(h, logging.FileHandler))
    file_handler = next(h for h in logger.handlers if isinstance(h, logging.FileHandler))

    assert console.stream == sys.stdout
    assert isinstance(console.formatter, ColoredFormatter)
    assert file_handler.baseFilename == os.path.abspath(str(paths.logs_root / "registry.log"))
    assert logger.propagate is False


def test_json_log_output_structure(paths):
    """File logs are JSON lines carrying extra_data keys."""
    logger = LoggerManager.get_logger("test_json_output", task_paths=paths, use_json=True, level="INFO")

    logger.info("scraper.run", extra={"extra_data": {"source_tag": "dblp", "notify_user": False}})
    _close_file_handlers(logger)

    with open(paths.get_log_path("test_json_output"), "r", encoding="utf-8") as f:
        log_entry = json.loads(f.readline())

    assert log_entry["message"] == "scraper.run"
    assert log_entry["logger"] == "test_json_output"
    assert log_entry["level"] == "INFO"
    assert log_entry["source_tag"] == "dblp"
    assert log_entry["notify_user"] is False


def test_plain_file_log_when_json_disabled(paths):
    logger = LoggerManager.get_logger("test_plain", task_paths=paths)

    logger.info("config.loaded")
    _close_file_handlers(logger)

    with open(paths.get_log_path("test_plain"), "r", encoding="utf-8") as f:
        line = f.readline()
    assert "| INFO     | test_plain | config.loaded" in line


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad body")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    entry = json.loads(JsonLogFormatter().format(record))
    assert "ValueError: bad body" in entry["exception"]


def test_level_threshold(paths):
    logger = LoggerManager.get_logger("test_level", task_paths=paths, level="WARNING")

    logger.info("hidden")
    logger.warning("shown")
    _close_file_handlers(logger)

    with open(paths.get_log_path("test_level"), "r", encoding="utf-8") as f:
        content = f.read()
    assert "shown" in content
    assert "hidden" not in content
