"""
notification_service.py — Per-user notification queue
Ephemeral by design: a bounded in-memory ring buffer per user (newest first).
Nothing here survives a restart or is shared between processes.
"""

import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime

from habitflow.config import NOTIFICATION_LIMIT
from habitflow.timeutils import utcnow

NOTIFICATION_TYPES = ("reminder", "notification", "nudge", "challenge", "streak")


@dataclass
class Notification:
    user_id: int
    type: str
    title: str
    message: str
    habit_id: int | None = None
    action_url: str | None = None
    id: str = field(default_factory=lambda: f"notif-{uuid.uuid4().hex}")
    timestamp: datetime = field(default_factory=utcnow)
    read: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class NotificationQueue:
    def __init__(self, limit: int = NOTIFICATION_LIMIT):
        self.limit = limit
        self._queues: dict[int, deque[Notification]] = {}
        self._lock = threading.Lock()

    def append(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        habit_id: int | None = None,
        action_url: str | None = None,
    ) -> Notification:
        """Add to the front of the user's queue; the oldest entry falls off past ``limit``."""
        n = Notification(
            user_id=user_id,
            type=type if type in NOTIFICATION_TYPES else "notification",
            title=title,
            message=message,
            habit_id=habit_id,
            action_url=action_url,
        )
        with self._lock:
            q = self._queues.setdefault(user_id, deque(maxlen=self.limit))
            q.appendleft(n)
        return n

    def list_all(self, user_id: int) -> list[Notification]:
        with self._lock:
            return list(self._queues.get(user_id, ()))

    def list_unread(self, user_id: int) -> list[Notification]:
        return [n for n in self.list_all(user_id) if not n.read]

    def unread_count(self, user_id: int) -> int:
        return len(self.list_unread(user_id))

    def mark_read(self, user_id: int, notification_id: str) -> bool:
        with self._lock:
            for n in self._queues.get(user_id, ()):
                if n.id == notification_id:
                    n.read = True
                    return True
        return False

    def mark_all_read(self, user_id: int) -> int:
        changed = 0
        with self._lock:
            for n in self._queues.get(user_id, ()):
                if not n.read:
                    n.read = True
                    changed += 1
        return changed

    def recent_of_type(self, user_id: int, type: str, since: datetime) -> list[Notification]:
        return [n for n in self.list_all(user_id) if n.type == type and n.timestamp > since]

    def clear(self):
        with self._lock:
            self._queues.clear()


# Process-wide queue used by routes and background jobs
notification_queue = NotificationQueue()
