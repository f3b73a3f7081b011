"""
notification_store.py

In-memory store of recent notifications.

- No persistence (no DB, no filesystem): a restart loses history, only real-time delivery matters.
- Bounded: the newest NOTIFICATION_CAPACITY entries are kept, newest-first.
- Thread-safe: Flask serves requests from several threads, every access goes through one lock.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Deque, Dict, List, Mapping, Optional

from alert_helpers import now_millis

NOTIFICATION_CAPACITY = 50


@dataclass(frozen=True)
class Notification:
    id: int
    project: str
    event: str
    timestamp: str
    received_at: str
    message: str = ""
    is_legacy: bool = False
    provider_metadata: Optional[Mapping[str, Any]] = field(default=None)

    def __post_init__(self) -> None:
        # Read-only copy: the caller's dict can't reach into a stored notification.
        if self.provider_metadata is not None:
            object.__setattr__(self, "provider_metadata", MappingProxyType(dict(self.provider_metadata)))

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape sent to clients (camelCase, `providerMetadata` only for webhook notifications)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "project": self.project,
            "event": self.event,
            "timestamp": self.timestamp,
            "receivedAt": self.received_at,
            "message": self.message,
            "isLegacy": self.is_legacy,
        }
        if self.provider_metadata is not None:
            data["providerMetadata"] = dict(self.provider_metadata)
        return data


class NotificationStore:
    """Append-only ring buffer, newest-first."""

    def __init__(self, capacity: int = NOTIFICATION_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._lock = threading.Lock()
        # appendleft + maxlen: inserting at the front drops the oldest entry from the tail.
        self._items: Deque[Notification] = deque(maxlen=capacity)
        self._last_id = 0

    def next_id(self) -> int:
        """Time-based id (ms), bumped when two notifications land in the same millisecond."""
        with self._lock:
            self._last_id = max(now_millis(), self._last_id + 1)
            return self._last_id

    def append(self, notification: Notification) -> None:
        with self._lock:
            self._items.appendleft(notification)

    def recent(self, k: int) -> List[Notification]:
        """First `k` notifications, newest-first. `k` is clamped to the current size."""
        if k <= 0:
            return []
        with self._lock:
            return [n for _, n in zip(range(k), self._items)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
