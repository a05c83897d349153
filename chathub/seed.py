from __future__ import annotations

import logging

from chathub.services.chat_service import ChatService

logger = logging.getLogger(__name__)

INITIAL_CHATS: list[dict[str, object]] = [
    {
        "first_name": "Alice",
        "last_name": "Freeman",
        "messages": [
            {"text": "Hi, how are you?", "isMe": False},
            {"text": "Not bad. What about you?", "isMe": True},
            {"text": "How was your meeting?", "isMe": True},
        ],
    },
    {
        "first_name": "Bob",
        "last_name": "Johnson",
        "messages": [
            {"text": "Hallo, wie geht es dir?", "isMe": False},
            {"text": "Sehr gud. Danke. Und dir?", "isMe": True},
            {"text": "Was machen Sie?", "isMe": True},
        ],
    },
    {
        "first_name": "Cathy",
        "last_name": "Smith",
        "messages": [
            {"text": "Привіт, як справи?", "isMe": False},
            {"text": "В мене все добре. А твої як?", "isMe": True},
            {"text": "Чим ти на вихідних займаєшься?", "isMe": True},
        ],
    },
]


def seed_initial_chats(chat_service: ChatService) -> int:
    if chat_service.list_chats():
        logger.info("seed_skipped reason=initial_chats_already_exist")
        return 0
    for item in INITIAL_CHATS:
        chat_service.create_chat(
            first_name=str(item["first_name"]),
            last_name=str(item["last_name"]),
            initial_messages=item["messages"],  # type: ignore[arg-type]
        )
    logger.info("seed_created count=%s", len(INITIAL_CHATS))
    return len(INITIAL_CHATS)
