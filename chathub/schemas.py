from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from chathub.models import Chat, Message


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageIn(_CamelModel):
    text: str | None = None
    is_me: bool = Field(default=False, alias="isMe")


class ChatCreateRequest(_CamelModel):
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    messages: list[MessageIn] | None = None


class ChatUpdateRequest(_CamelModel):
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")


class MessageTextUpdateRequest(_CamelModel):
    text: str | None = None


class MessageOut(_CamelModel):
    id: str = Field(alias="_id")
    text: str
    is_me: bool = Field(alias="isMe")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_message(cls, message: Message) -> MessageOut:
        return cls(
            id=message.id,
            text=message.text,
            is_me=message.is_me,
            created_at=message.created_at,
        )


class ChatOut(_CamelModel):
    id: str = Field(alias="_id")
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    last_message: str = Field(alias="lastMessage")
    messages: list[MessageOut] = Field(default_factory=list)

    @classmethod
    def from_chat(cls, chat: Chat) -> ChatOut:
        return cls(
            id=chat.id,
            first_name=chat.first_name,
            last_name=chat.last_name,
            last_message=chat.last_message,
            messages=[MessageOut.from_message(item) for item in chat.messages],
        )


class StatusMessage(BaseModel):
    message: str


class RandomMessagesToggleResponse(BaseModel):
    message: str
    enabled: bool


class RandomMessagesStateResponse(BaseModel):
    enabled: bool
    interval_sec: float
