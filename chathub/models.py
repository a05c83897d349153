from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4


def new_object_id() -> str:
    return uuid4().hex


@dataclass
class Message:
    text: str
    is_me: bool
    id: str = field(default_factory=new_object_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "text": self.text,
            "isMe": self.is_me,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Message:
        created_at = _parse_datetime(doc.get("createdAt"))
        return cls(
            id=str(doc.get("_id") or new_object_id()),
            text=str(doc.get("text") or ""),
            is_me=bool(doc.get("isMe", False)),
            created_at=created_at or datetime.now(UTC),
        )


@dataclass
class Chat:
    first_name: str
    last_name: str
    last_message: str = ""
    messages: list[Message] = field(default_factory=list)
    id: str = field(default_factory=new_object_id)

    def find_message(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "lastMessage": self.last_message,
            "messages": [item.to_document() for item in self.messages],
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Chat:
        raw_messages = doc.get("messages")
        messages = [
            Message.from_document(item)
            for item in (raw_messages if isinstance(raw_messages, list) else [])
            if isinstance(item, dict)
        ]
        return cls(
            id=str(doc.get("_id") or new_object_id()),
            first_name=str(doc.get("firstName") or ""),
            last_name=str(doc.get("lastName") or ""),
            last_message=str(doc.get("lastMessage") or ""),
            messages=messages,
        )


@dataclass(frozen=True)
class MessageEvent:
    """A message that landed in a chat, as pushed to subscribers."""

    chat_id: str
    message: Message

    def to_frame(self) -> dict[str, Any]:
        return {"chatId": self.chat_id, "message": self.message.to_document()}


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
