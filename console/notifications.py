"""
Operator notices.

Session-scoped stand-in for the dashboard's toast messages: every surfaced
success or failure is recorded, logged and pushed to subscribed listeners.
"""

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)


class NoticeLevel(str, enum.Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.WARNING,
}


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str
    resource: Optional[str] = None
    created_at: float = field(default_factory=time.time)


class NotificationCenter:
    def __init__(self, max_history: int = 200):
        self._history: Deque[Notice] = deque(maxlen=max_history)
        self._listeners: List[Callable[[Notice], None]] = []

    def notify(self, level: NoticeLevel, message: str, resource: Optional[str] = None) -> Notice:
        notice = Notice(level=level, message=message, resource=resource)
        self._history.append(notice)
        prefix = f"[{resource}] " if resource else ""
        logger.log(_LOG_LEVELS[level], f"{prefix}{message}")
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.warning(f"Notice listener failed: {e}")
        return notice

    def success(self, message: str, resource: Optional[str] = None) -> Notice:
        return self.notify(NoticeLevel.SUCCESS, message, resource)

    def info(self, message: str, resource: Optional[str] = None) -> Notice:
        return self.notify(NoticeLevel.INFO, message, resource)

    def warning(self, message: str, resource: Optional[str] = None) -> Notice:
        return self.notify(NoticeLevel.WARNING, message, resource)

    def error(self, message: str, resource: Optional[str] = None) -> Notice:
        return self.notify(NoticeLevel.ERROR, message, resource)

    def subscribe(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def recent(self, limit: int = 20, level: Optional[NoticeLevel] = None) -> List[Notice]:
        notices = [n for n in self._history if level is None or n.level == level]
        return notices[-limit:]

    def clear(self) -> None:
        self._history.clear()
