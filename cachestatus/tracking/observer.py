"""
Per-tab push channel to popup subscribers.

Holds at most one subscriber per tab and no session state of its
own; the registry hands it the snapshot to deliver.  Delivery is
fire-and-forget: a subscriber that fails is dropped and the calling
transition carries on.  Every subscriber the hub lets go of, whether
it failed, was replaced, or its tab closed, is told so through
``close()`` so its transport can shut down.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from cachestatus.models.events import UpdateMessage
from cachestatus.models.session import TabId, TabSession
from cachestatus.utils import errors, logger

log = logger.create_logger("Observer")


class Subscriber(Protocol):
    """Anything that can accept a pushed message without blocking."""

    def send(self, message: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class QueueSubscriber:
    """Subscriber backed by a bounded ``asyncio.Queue``.

    The WebSocket handler drains it with ``receive``; ``send`` never
    awaits.  A full queue raises ``asyncio.QueueFull``, which the hub
    treats as a dead subscriber and closes.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: dict[str, Any]) -> None:
        self.queue.put_nowait(message)

    def close(self) -> None:
        self._closed.set()

    async def receive(self) -> dict[str, Any] | None:
        """Wait for the next message.

        Returns:
            The message, or ``None`` once the subscriber is closed.
        """
        if self.closed:
            return None
        get = asyncio.create_task(self.queue.get())
        closed = asyncio.create_task(self._closed.wait())
        try:
            await asyncio.wait((get, closed), return_when=asyncio.FIRST_COMPLETED)
        finally:
            get.cancel()
            closed.cancel()
        if self.closed:
            return None
        return get.result()


def build_update(session: TabSession | None) -> dict[str, Any]:
    """Build the ``{type: "update", data}`` payload for *session*."""
    return UpdateMessage(data=session).to_wire()


class ObserverHub:
    """Tracks zero-or-one subscriber per tab and pushes snapshots."""

    def __init__(self) -> None:
        self._subscribers: dict[TabId, Subscriber] = {}

    def subscribe(self, tab_id: TabId, subscriber: Subscriber, snapshot: TabSession | None) -> None:
        """Register *subscriber* for *tab_id* and push *snapshot* immediately.

        A later subscription for the same tab replaces and closes the
        earlier one.
        """
        previous = self._subscribers.get(tab_id)
        if previous is not None and previous is not subscriber:
            log.debug("Replacing subscriber", {"tabId": tab_id})
            previous.close()
        self._subscribers[tab_id] = subscriber
        self._deliver(tab_id, subscriber, snapshot)

    def unsubscribe(self, tab_id: TabId, subscriber: Subscriber) -> None:
        """Remove *subscriber* if it is still the one registered for *tab_id*."""
        if self._subscribers.get(tab_id) is subscriber:
            del self._subscribers[tab_id]

    def drop(self, tab_id: TabId) -> None:
        """Forget and close any subscriber for *tab_id* (tab closed)."""
        subscriber = self._subscribers.pop(tab_id, None)
        if subscriber is not None:
            subscriber.close()

    def notify(self, tab_id: TabId, session: TabSession | None) -> bool:
        """Push a fresh snapshot to the tab's subscriber, if any.

        Returns:
            True when a subscriber received the update.
        """
        subscriber = self._subscribers.get(tab_id)
        if subscriber is None:
            return False
        return self._deliver(tab_id, subscriber, session)

    def has_subscriber(self, tab_id: TabId) -> bool:
        return tab_id in self._subscribers

    def __len__(self) -> int:
        return len(self._subscribers)

    def clear(self) -> None:
        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.close()

    def _deliver(self, tab_id: TabId, subscriber: Subscriber, session: TabSession | None) -> bool:
        try:
            subscriber.send(build_update(session))
        except Exception as exc:
            log.debug("Dropping subscriber after failed push", {
                "tabId": tab_id,
                "error": errors.get_error_message(exc),
            })
            self.unsubscribe(tab_id, subscriber)
            subscriber.close()
            return False
        return True
