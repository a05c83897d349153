from __future__ import annotations

from dataclasses import dataclass
from os import getenv

from chathub.services.auto_reply import AutoReplyScheduler
from chathub.services.chat_service import ChatService
from chathub.services.chat_store import ChatStore
from chathub.services.notification_hub import NotificationHub
from chathub.services.random_messages import DEFAULT_RANDOM_MESSAGE_TEXT, RandomMessageGenerator


@dataclass
class ServiceContainer:
    chat_store: ChatStore
    chat_service: ChatService
    notification_hub: NotificationHub
    auto_reply_scheduler: AutoReplyScheduler
    random_message_generator: RandomMessageGenerator
    seed_chats: bool
    cors_origins: list[str]

    def shutdown(self) -> None:
        self.random_message_generator.stop()
        self.auto_reply_scheduler.cancel_all()
        self.auto_reply_scheduler.wait_idle(timeout=5.0)


def build_container() -> ServiceContainer:
    chat_store = ChatStore(storage_path=getenv("CHATHUB_STORE_FILE", "./data/chats.json"))
    chat_service = ChatService(store=chat_store)
    notification_hub = NotificationHub()
    cors_origins = [
        origin.strip()
        for origin in getenv("CHATHUB_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    return ServiceContainer(
        chat_store=chat_store,
        chat_service=chat_service,
        notification_hub=notification_hub,
        auto_reply_scheduler=AutoReplyScheduler(
            chat_service=chat_service,
            notification_hub=notification_hub,
            delay_sec=_parse_float(getenv("CHATHUB_AUTO_REPLY_DELAY_SEC"), default=3.0),
        ),
        random_message_generator=RandomMessageGenerator(
            chat_service=chat_service,
            notification_hub=notification_hub,
            interval_sec=_parse_float(
                getenv("CHATHUB_RANDOM_MESSAGE_INTERVAL_SEC"),
                default=5.0,
            ),
            text=getenv("CHATHUB_RANDOM_MESSAGE_TEXT") or DEFAULT_RANDOM_MESSAGE_TEXT,
        ),
        seed_chats=_parse_bool(getenv("CHATHUB_SEED_CHATS"), default=True),
        cors_origins=cors_origins or ["*"],
    )


def _parse_float(value: str | None, *, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default
