"""
notification_hub.py

In-memory notification broadcaster for the dashboards' /events stream.

Requirements:
- No persistence: notifications are pushed only to currently connected clients
  (a newly connected client gets a short history replay from the NotificationStore).
- Server-Sent Events (SSE): Flask streams one JSON object per `data:` frame.
- One slow or dead client must never block, or fail, delivery to the others.
"""

from __future__ import annotations

import itertools
import json
import queue
import threading
import time
import traceback
from typing import Any, Callable, Dict, Iterator, Optional

from alert_helpers import DEFAULT_KEEPALIVE_SECONDS, utc_now_iso
from notification_store import Notification, NotificationStore

HISTORY_SIZE = 5

_ids = itertools.count(1)


def format_sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


class Subscription:
    """
    One connected SSE client.

    Owns a bounded outbound queue of already-framed messages, a closed flag and the deadline of
    its next keep-alive ping. Only the hub holds a reference to it.
    """

    def __init__(
        self,
        max_queue_size: int = 100,
        keepalive_interval: float = DEFAULT_KEEPALIVE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = next(_ids)
        self.keepalive_interval = keepalive_interval
        self._clock = clock
        self._queue: queue.Queue[Optional[str]] = queue.Queue(maxsize=max_queue_size)
        self._closed = threading.Event()
        self._next_ping = clock() + keepalive_interval

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, frame: str) -> bool:
        """Non-blocking write. False means the client can't keep up (or is gone)."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            return False
        return True

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        # Wake up a consumer blocked on an empty queue. A full queue means it is not blocked.
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def frames(self) -> Iterator[str]:
        """
        Yield queued frames until closed, interleaving a `ping` frame every `keepalive_interval`
        seconds on a fixed schedule (busy or idle).
        """
        while not self._closed.is_set():
            now = self._clock()
            if now >= self._next_ping:
                self._next_ping = now + self.keepalive_interval
                yield format_sse({"type": "ping", "timestamp": utc_now_iso()})
                continue
            try:
                frame = self._queue.get(timeout=self._next_ping - now)
            except queue.Empty:
                continue
            if frame is None or self._closed.is_set():
                break
            yield frame


class NotificationHub:
    """
    Thread-safe fan-out hub.

    Each SSE client gets its own Subscription (bounded queue). Publishing pushes to all of them without
    blocking; a client whose queue is full is treated as disconnected and pruned.
    """

    def __init__(
        self,
        store: NotificationStore,
        keepalive_interval: float = DEFAULT_KEEPALIVE_SECONDS,
        history_size: int = HISTORY_SIZE,
        max_queue_size: int = 100,
    ) -> None:
        self.store = store
        self.keepalive_interval = keepalive_interval
        self.history_size = history_size
        self.max_queue_size = max_queue_size
        self._lock = threading.Lock()
        self._clients: Dict[int, Subscription] = {}

    def subscribe(self) -> Subscription:
        """
        Register a new client. Its queue starts with a `connected` frame (current client count)
        followed by a `history` frame with the most recent notifications, newest-first.
        """
        sub = Subscription(max_queue_size=self.max_queue_size, keepalive_interval=self.keepalive_interval)
        with self._lock:
            count = len(self._clients) + 1
            history = [n.to_dict() for n in self.store.recent(self.history_size)]
            sub.offer(format_sse({"type": "connected", "message": "Connected to deployment alerts", "clients": count}))
            sub.offer(format_sse({"type": "history", "notifications": history}))
            self._clients[sub.id] = sub
        print(f"[events] client {sub.id} connected clients={count}")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Idempotent: unknown or already removed subscriptions are ignored."""
        with self._lock:
            removed = self._clients.get(sub.id) is sub
            if removed:
                del self._clients[sub.id]
            count = len(self._clients)
        sub.close()
        if removed:
            print(f"[events] client {sub.id} disconnected clients={count}")

    def publish(self, notification: Notification) -> int:
        """
        Push a notification to every connected client. Returns how many clients accepted it.
        Failures are handled per client (logged + pruned) and never raised to the caller.
        """
        frame = format_sse({"type": "notification", "notification": notification.to_dict()})
        with self._lock:
            clients = list(self._clients.values())

        delivered = 0
        for sub in clients:
            try:
                ok = sub.offer(frame)
            except Exception:
                traceback.print_exc()
                ok = False
            if ok:
                delivered += 1
                continue
            print(f"[events] dropping client {sub.id}: write failed")
            self.unsubscribe(sub)
        return delivered

    def stream(self, sub: Subscription) -> Iterator[str]:
        """SSE frames for one client. Closing the generator (client went away) unsubscribes it."""
        try:
            yield from sub.frames()
        finally:
            self.unsubscribe(sub)

    def listen(self) -> Iterator[str]:
        """
        Subscribe and stream in one generator. Registration happens on the first `next()`,
        so a response body that is never read (HEAD, early disconnect) never registers a client.
        """
        sub = self.subscribe()
        yield from self.stream(sub)

    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def close_all(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
        for sub in clients:
            self.unsubscribe(sub)
