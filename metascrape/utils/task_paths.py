from pathlib import Path
from typing import Optional


class TaskPaths:
    """
    Resolves log file locations: <logs_root>/<name>.log
    """

    def __init__(self, logs_root: str = "logs", base_dir: Optional[Path] = None):
        if base_dir:
            self.logs_root = Path(base_dir) / logs_root
        else:
            self.logs_root = Path(logs_root)

    def get_log_path(self, name: str = "metascrape") -> str:
        """Log file path for a component, creating the log root if needed."""
        p = self.logs_root / f"{name}.log"
        p.parent.mkdir(parents=True, exist_ok=True)
        return str(p)
