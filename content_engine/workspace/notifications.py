"""Transient user notifications."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from content_engine.utils.time import utc_now


class Level(Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
        }


class NotificationLog:
    """Bounded queue of notifications waiting to be shown."""

    def __init__(self, maxlen: int = 50) -> None:
        self._items: deque[Notification] = deque(maxlen=maxlen)

    def push(self, level: Level, message: str) -> Notification:
        notification = Notification(level, message)
        self._items.append(notification)
        return notification

    def pending(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        items = list(self._items)
        self._items.clear()
        return items

    def clear(self) -> None:
        self._items.clear()
