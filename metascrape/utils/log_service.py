"""Host-facing log collaborator.

Scraper hosts report around pipeline runs through `LogService.log(...)`:
every event goes to a `LoggerManager` logger with the source tag attached
as structured data, and events flagged `notify_user` are also kept in
`notifications` so a UI layer can surface them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from metascrape.utils.logger import LoggerManager


@dataclass(frozen=True)
class Notification:
    """A log event the user should see."""

    level: str
    message: str
    source_tag: str
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LogService:
    """Logging collaborator shared by the registry and the extension manager."""

    def __init__(self, logger: Optional[logging.Logger] = None, max_notifications: int = 200):
        self.logger = logger or LoggerManager.get_logger("metascrape", use_json=True)
        self.max_notifications = max_notifications
        self.notifications: List[Notification] = []

    def log(
        self,
        level: str,
        message: str,
        error: Optional[BaseException] = None,
        notify_user: bool = False,
        source_tag: str = "",
    ) -> None:
        level_no = logging.getLevelName(level.upper())
        if not isinstance(level_no, int):
            level_no = logging.INFO

        extra_data = {"source_tag": source_tag, "notify_user": notify_user}
        if error is not None:
            extra_data["error"] = f"{type(error).__name__}: {error}"

        self.logger.log(
            level_no,
            message,
            extra={"extra_data": extra_data},
            exc_info=error if error is not None and level_no >= logging.ERROR else None,
        )

        if notify_user:
            self.notifications.append(
                Notification(
                    level=logging.getLevelName(level_no),
                    message=message,
                    source_tag=source_tag,
                    error=extra_data.get("error"),
                )
            )
            del self.notifications[: -self.max_notifications]

    def info(self, message: str, notify_user: bool = False, source_tag: str = "") -> None:
        self.log("INFO", message, notify_user=notify_user, source_tag=source_tag)

    def warning(self, message: str, notify_user: bool = False, source_tag: str = "") -> None:
        self.log("WARNING", message, notify_user=notify_user, source_tag=source_tag)

    def error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        notify_user: bool = True,
        source_tag: str = "",
    ) -> None:
        self.log("ERROR", message, error=error, notify_user=notify_user, source_tag=source_tag)
