from __future__ import annotations

import json
import queue
from typing import Any, Dict, List

from notification_hub import Subscription
from notification_store import Notification, NotificationStore


def parse_frame(frame: str) -> Dict[str, Any]:
    assert frame.startswith("data: ") and frame.endswith("\n\n"), frame
    return json.loads(frame[len("data: "):].strip())


def drain(sub: Subscription) -> List[Dict[str, Any]]:
    """Everything currently queued for a subscription, decoded (does not block)."""
    out = []
    while True:
        try:
            frame = sub._queue.get_nowait()
        except queue.Empty:
            return out
        if frame is None:
            return out
        out.append(parse_frame(frame))


def make_notification(store: NotificationStore, project: str = "demo", event: str = "build_start") -> Notification:
    return Notification(
        id=store.next_id(),
        project=project,
        event=event,
        timestamp="2024-01-01T00:00:00.000Z",
        received_at="2024-01-01T00:00:00.000Z",
        message="",
        is_legacy=True,
    )
