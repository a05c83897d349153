from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Condition, Timer
from uuid import uuid4

from chathub.errors import NotFoundError, StoreError
from chathub.models import MessageEvent
from chathub.services.chat_service import ChatService
from chathub.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)


@dataclass
class ScheduledReply:
    chat_id: str
    text: str
    reply_id: str = field(default_factory=lambda: uuid4().hex)
    timer: Timer | None = None
    started: bool = False

    def cancel(self) -> None:
        if self.timer is not None:
            self.timer.cancel()


class AutoReplyScheduler:
    """Echoes a human message back into its chat after a fixed delay.

    Replies are appended with ``is_me=False`` and broadcast; they never schedule further
    replies. A chat deleted before the reply fires turns the reply into a logged no-op.
    """

    def __init__(
        self,
        *,
        chat_service: ChatService,
        notification_hub: NotificationHub,
        delay_sec: float = 3.0,
    ) -> None:
        self._chat_service = chat_service
        self._notification_hub = notification_hub
        self._delay_sec = max(float(delay_sec), 0.0)
        self._pending: dict[str, ScheduledReply] = {}
        self._idle = Condition()

    @property
    def delay_sec(self) -> float:
        return self._delay_sec

    def schedule(self, *, chat_id: str, text: str) -> ScheduledReply:
        reply = ScheduledReply(chat_id=chat_id, text=text)
        timer = Timer(self._delay_sec, self._fire, kwargs={"reply": reply})
        timer.daemon = True
        timer.name = f"chathub-reply-{reply.reply_id[:12]}"
        reply.timer = timer
        with self._idle:
            self._pending[reply.reply_id] = reply
        timer.start()
        logger.info(
            "auto_reply_scheduled chat_id=%s reply_id=%s delay_sec=%s",
            chat_id,
            reply.reply_id,
            self._delay_sec,
        )
        return reply

    def pending_count(self) -> int:
        with self._idle:
            return len(self._pending)

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._idle:
            return self._idle.wait_for(lambda: not self._pending, timeout=timeout)

    def cancel_all(self) -> int:
        """Cancel replies whose timer has not fired yet.

        Replies already being delivered stay pending until they finish, so ``wait_idle``
        after ``cancel_all`` still waits for them.
        """
        with self._idle:
            pending = [reply for reply in self._pending.values() if not reply.started]
            for reply in pending:
                del self._pending[reply.reply_id]
            self._idle.notify_all()
        for reply in pending:
            reply.cancel()
        if pending:
            logger.info("auto_reply_cancelled count=%s", len(pending))
        return len(pending)

    def _fire(self, *, reply: ScheduledReply) -> None:
        try:
            with self._idle:
                if reply.reply_id not in self._pending:
                    return
                reply.started = True
            self._deliver(reply)
        finally:
            with self._idle:
                self._pending.pop(reply.reply_id, None)
                self._idle.notify_all()

    def _deliver(self, reply: ScheduledReply) -> None:
        try:
            _, message = self._chat_service.append_message(
                reply.chat_id,
                text=reply.text,
                is_me=False,
            )
        except NotFoundError:
            logger.info("auto_reply_skipped chat_id=%s reason=chat_not_found", reply.chat_id)
            return
        except StoreError:
            logger.exception("auto_reply_store_failed chat_id=%s", reply.chat_id)
            return
        self._notification_hub.broadcast(MessageEvent(chat_id=reply.chat_id, message=message))
