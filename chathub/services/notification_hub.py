from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Protocol

from chathub.models import MessageEvent

logger = logging.getLogger(__name__)


class PushConnection(Protocol):
    @property
    def is_open(self) -> bool: ...

    def send(self, frame: str) -> None: ...


class NotificationHub:
    """Fan-out of message events to live push subscribers.

    Delivery is best-effort: nothing is queued for subscribers that connect later and
    nothing is acknowledged.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._subscribers: set[PushConnection] = set()

    def subscribe(self, connection: PushConnection) -> None:
        with self._lock:
            self._subscribers.add(connection)
        logger.info("push_subscribed total=%s", self.subscriber_count())

    def unsubscribe(self, connection: PushConnection) -> None:
        with self._lock:
            self._subscribers.discard(connection)
        logger.info("push_unsubscribed total=%s", self.subscriber_count())

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def broadcast(self, event: MessageEvent) -> int:
        frame = json.dumps(event.to_frame(), ensure_ascii=False)
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for connection in subscribers:
            if not connection.is_open:
                continue
            try:
                connection.send(frame)
            except Exception:  # noqa: BLE001
                logger.warning(
                    "push_send_failed chat_id=%s message_id=%s",
                    event.chat_id,
                    event.message.id,
                    exc_info=True,
                )
                continue
            delivered += 1
        logger.info(
            "push_broadcast chat_id=%s message_id=%s delivered=%s subscribers=%s",
            event.chat_id,
            event.message.id,
            delivered,
            len(subscribers),
        )
        return delivered
