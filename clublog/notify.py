"""Outbound collaborators: user notifications and page navigation."""

import collections
import logging
import threading
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    def notify(self, severity: str, message: str) -> None: ...


@runtime_checkable
class Navigator(Protocol):
    def navigate(self, target: str) -> None: ...


class NotificationFeed:
    """Bounded queue of notifications and navigation requests for a client to poll.

    Implements both Notifier and Navigator.
    """

    def __init__(self, max_items: int = 50):
        self._items = collections.deque(maxlen=max_items)
        self._lock = threading.Lock()

    def notify(self, severity: str, message: str) -> None:
        self._push({"type": "notification", "severity": severity, "message": message})

    def navigate(self, target: str) -> None:
        self._push({"type": "navigate", "target": target})

    def _push(self, item: dict):
        item["timestamp"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._items.append(item)
        logger.debug("Queued %s for client: %s", item["type"], item.get("message") or item.get("target"))

    def peek(self) -> list[dict]:
        with self._lock:
            return list(self._items)

    def drain(self) -> list[dict]:
        """Return pending items oldest first and empty the feed."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items
