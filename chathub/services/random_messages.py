from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from threading import Event, Lock, Thread

from chathub.errors import NotFoundError, StoreError
from chathub.models import MessageEvent
from chathub.services.chat_service import ChatService
from chathub.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)

DEFAULT_RANDOM_MESSAGE_TEXT = "Random message!"


@dataclass(frozen=True)
class ToggleResult:
    enabled: bool
    changed: bool
    message: str


class RandomMessageGenerator:
    """Toggleable background loop that drops a synthetic message into a random chat.

    ``stop`` waits for an in-flight tick to finish; once it returns no further tick runs.
    """

    def __init__(
        self,
        *,
        chat_service: ChatService,
        notification_hub: NotificationHub,
        interval_sec: float = 5.0,
        text: str = DEFAULT_RANDOM_MESSAGE_TEXT,
        rng: random.Random | None = None,
    ) -> None:
        self._chat_service = chat_service
        self._notification_hub = notification_hub
        self._interval_sec = max(float(interval_sec), 0.01)
        self._text = text
        self._rng = rng or random.Random()
        self._state_lock = Lock()
        self._tick_lock = Lock()
        self._stop_event: Event | None = None

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._stop_event is not None

    @property
    def interval_sec(self) -> float:
        return self._interval_sec

    def start(self) -> ToggleResult:
        with self._state_lock:
            if self._stop_event is not None:
                return ToggleResult(
                    enabled=True,
                    changed=False,
                    message="Random message sending already enabled",
                )
            stop_event = Event()
            thread = Thread(
                target=self._run,
                kwargs={"stop_event": stop_event},
                daemon=True,
                name="chathub-random-messages",
            )
            self._stop_event = stop_event
            thread.start()
        logger.info("random_messages_started interval_sec=%s", self._interval_sec)
        return ToggleResult(enabled=True, changed=True, message="Random message sending enabled")

    def stop(self) -> ToggleResult:
        with self._state_lock:
            stop_event = self._stop_event
            if stop_event is None:
                return ToggleResult(
                    enabled=False,
                    changed=False,
                    message="Random message sending already disabled",
                )
            self._stop_event = None
        with self._tick_lock:
            stop_event.set()
        logger.info("random_messages_stopped")
        return ToggleResult(enabled=False, changed=True, message="Random message sending disabled")

    def tick(self) -> MessageEvent | None:
        """Append one synthetic message to a random chat; None when there is nothing to do."""
        chats = self._chat_service.list_chats()
        if not chats:
            return None
        target = self._rng.choice(chats)
        try:
            _, message = self._chat_service.append_message(target.id, text=self._text, is_me=False)
        except NotFoundError:
            logger.info("random_message_skipped chat_id=%s reason=chat_not_found", target.id)
            return None
        except StoreError:
            logger.exception("random_message_store_failed chat_id=%s", target.id)
            return None
        event = MessageEvent(chat_id=target.id, message=message)
        self._notification_hub.broadcast(event)
        return event

    def _run(self, *, stop_event: Event) -> None:
        while not stop_event.wait(self._interval_sec):
            with self._tick_lock:
                if stop_event.is_set():
                    break
                try:
                    self.tick()
                except Exception:  # noqa: BLE001
                    logger.exception("random_message_tick_failed")
