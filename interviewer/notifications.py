"""Fan-out of interview progress events to connected client sockets.

Each observer gets its own bounded asyncio.Queue; the WebSocket endpoint
pumps that queue to the socket. broadcast() only ever does put_nowait, so
a slow or dead observer can never block delivery to the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

log = logging.getLogger("interviewer.notifications")

Event = dict[str, Any]


class NotificationHub:
    """Process-wide observer registry, independent of any interview's lifecycle."""

    def __init__(self, maxsize: int = 100) -> None:
        self._maxsize = maxsize
        self._subscribers: list[asyncio.Queue[Event]] = []

    def subscribe(self) -> asyncio.Queue[Event]:
        """Create a new observer queue and return it."""
        q: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(q)
        log.info("Observer connected (total: %d)", len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[Event]) -> None:
        """Remove an observer queue. Unknown queues are ignored."""
        try:
            self._subscribers.remove(q)
        except ValueError:
            return
        log.info("Observer disconnected (total: %d)", len(self._subscribers))

    def broadcast(self, event: Event) -> int:
        """Deliver ``event`` to every observer. Returns how many received it."""
        delivered = 0
        for q in list(self._subscribers):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest event to make room
                try:
                    q.get_nowait()
                    q.put_nowait(event)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    log.warning("Observer queue stuck, skipping %s", event.get("type"))
                    continue
            delivered += 1
        log.debug("Broadcast %s to %d observer(s)", event.get("type"), delivered)
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
