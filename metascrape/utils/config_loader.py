from pathlib import Path
from typing import Any

import yaml

from metascrape.utils.logger import LoggerManager
from metascrape.utils.task_paths import TaskPaths


class ConfigLoader:
    """
    Loads a YAML configuration file.
    Supports nested keys via dot notation ("scrapers.dblp.args").
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.config = self._load()

    def _get_logger(self):
        return LoggerManager.get_logger(name="config", task_paths=TaskPaths(), use_json=True)

    def _load(self) -> dict:
        log = self._get_logger()
        path = self.path
        if not path.exists():
            log.error("config.missing", extra={"extra_data": {"path": str(path)}})
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            if data is None:
                data = {}
            if not isinstance(data, dict):
                log.error("config.invalid_type", extra={"extra_data": {"path": str(path)}})
                raise ValueError(f"Invalid config (expected mapping) at {path}")
            log.info("config.loaded", extra={"extra_data": {"path": str(path)}})
            return data
        except Exception as e:
            log.error(
                "config.load.fail",
                extra={"extra_data": {"path": str(path), "error": str(e)}},
                exc_info=True,
            )
            raise

    def get(self, key: str, default: Any = None) -> Any:
        """Supports dot notation for nested access."""
        val = self.config
        for part in key.split("."):
            if isinstance(val, dict) and part in val:
                val = val[part]
            else:
                return default
        return val

    def as_dict(self) -> dict:
        return self.config
