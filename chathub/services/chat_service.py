from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from chathub.errors import NotFoundError, ValidationError
from chathub.models import Chat, Message
from chathub.services.chat_locks import ChatLockRegistry
from chathub.services.chat_store import ChatStore

logger = logging.getLogger(__name__)


class ChatService:
    """Chat CRUD and message appends on top of the document store.

    Every read-modify-write of a chat's message list runs under that chat's lock, so
    concurrent appends to the same chat serialize while other chats proceed untouched.
    """

    def __init__(self, store: ChatStore, locks: ChatLockRegistry | None = None) -> None:
        self._store = store
        self._locks = locks or ChatLockRegistry()

    def create_chat(
        self,
        *,
        first_name: str | None,
        last_name: str | None,
        initial_messages: Iterable[Mapping[str, Any]] | None = None,
    ) -> Chat:
        first, last = _require_names(first_name, last_name)
        messages = [_message_from_payload(item) for item in (initial_messages or [])]
        chat = Chat(
            first_name=first,
            last_name=last,
            last_message=messages[-1].text if messages else "",
            messages=messages,
        )
        created = self._store.create(chat.to_document())
        logger.info("chat_created chat_id=%s messages=%s", created.id, len(created.messages))
        return created

    def list_chats(self) -> list[Chat]:
        return self._store.find()

    def get_chat(self, chat_id: str) -> Chat:
        chat = self._store.find_by_id(chat_id)
        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    def append_message(self, chat_id: str, *, text: str | None, is_me: bool) -> tuple[Chat, Message]:
        if not isinstance(text, str):
            raise ValidationError("Message text is required")
        with self._locks.hold(chat_id):
            chat = self._store.find_by_id(chat_id)
            if chat is None:
                raise NotFoundError("Chat not found")
            # Stamped under the lock so createdAt follows list order.
            message = Message(text=text, is_me=bool(is_me))
            chat.messages.append(message)
            chat.last_message = message.text
            saved = self._store.save(chat)
        if saved is None:
            raise NotFoundError("Chat not found")
        logger.info(
            "chat_append chat_id=%s message_id=%s is_me=%s total=%s",
            chat_id,
            message.id,
            message.is_me,
            len(saved.messages),
        )
        return saved, message

    def update_chat_profile(
        self,
        chat_id: str,
        *,
        first_name: str | None,
        last_name: str | None,
    ) -> Chat:
        first, last = _require_names(first_name, last_name)
        with self._locks.hold(chat_id):
            updated = self._store.update_by_id(chat_id, {"firstName": first, "lastName": last})
        if updated is None:
            raise NotFoundError("Chat not found")
        return updated

    def delete_chat(self, chat_id: str) -> Chat:
        with self._locks.hold(chat_id):
            deleted = self._store.delete_by_id(chat_id)
        if deleted is None:
            raise NotFoundError("Chat not found")
        logger.info("chat_deleted chat_id=%s", chat_id)
        return deleted

    def update_message_text(self, chat_id: str, message_id: str, *, text: str | None) -> Chat:
        # last_message is left as-is, even when the edited message is the newest one.
        if not isinstance(text, str):
            raise ValidationError("Message text is required")
        with self._locks.hold(chat_id):
            chat = self._store.find_by_id(chat_id)
            if chat is None:
                raise NotFoundError("Chat not found")
            message = chat.find_message(message_id)
            if message is None:
                raise NotFoundError("Message not found")
            message.text = text
            saved = self._store.save(chat)
        if saved is None:
            raise NotFoundError("Chat not found")
        return saved


def _require_names(first_name: str | None, last_name: str | None) -> tuple[str, str]:
    first = first_name.strip() if isinstance(first_name, str) else ""
    last = last_name.strip() if isinstance(last_name, str) else ""
    if not first or not last:
        raise ValidationError("First name and last name are required")
    return first, last


def _message_from_payload(item: Mapping[str, Any]) -> Message:
    text = item.get("text")
    if not isinstance(text, str):
        raise ValidationError("Message text is required")
    return Message(text=text, is_me=bool(item.get("isMe", item.get("is_me", False))))
