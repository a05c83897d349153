from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Request, status

from chathub.container import ServiceContainer
from chathub.schemas import (
    ChatCreateRequest,
    ChatOut,
    ChatUpdateRequest,
    MessageIn,
    MessageTextUpdateRequest,
    StatusMessage,
)

router = APIRouter(prefix="/api/chats", tags=["chats"])
logger = logging.getLogger(__name__)


def _get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", str(uuid4()))


@router.get("", response_model=list[ChatOut])
def list_chats(request: Request) -> list[ChatOut]:
    chats = _get_container(request).chat_service.list_chats()
    return [ChatOut.from_chat(chat) for chat in chats]


@router.post("", response_model=ChatOut, status_code=status.HTTP_201_CREATED)
def create_chat(req: ChatCreateRequest, request: Request) -> ChatOut:
    chat = _get_container(request).chat_service.create_chat(
        first_name=req.first_name,
        last_name=req.last_name,
        initial_messages=[
            {"text": item.text, "isMe": item.is_me} for item in (req.messages or [])
        ],
    )
    logger.info("chat_create trace_id=%s chat_id=%s", _trace_id(request), chat.id)
    return ChatOut.from_chat(chat)


@router.get("/{chat_id}", response_model=ChatOut)
def get_chat(chat_id: str, request: Request) -> ChatOut:
    return ChatOut.from_chat(_get_container(request).chat_service.get_chat(chat_id))


@router.patch("/{chat_id}/messages", response_model=ChatOut)
def append_message(chat_id: str, req: MessageIn, request: Request) -> ChatOut:
    container = _get_container(request)
    chat, message = container.chat_service.append_message(
        chat_id,
        text=req.text,
        is_me=req.is_me,
    )
    container.auto_reply_scheduler.schedule(chat_id=chat_id, text=message.text)
    logger.info(
        "chat_message trace_id=%s chat_id=%s message_id=%s",
        _trace_id(request),
        chat_id,
        message.id,
    )
    return ChatOut.from_chat(chat)


@router.patch("/{chat_id}/messages/{message_id}", response_model=ChatOut)
def update_message_text(
    chat_id: str,
    message_id: str,
    req: MessageTextUpdateRequest,
    request: Request,
) -> ChatOut:
    chat = _get_container(request).chat_service.update_message_text(
        chat_id,
        message_id,
        text=req.text,
    )
    return ChatOut.from_chat(chat)


@router.patch("/{chat_id}", response_model=ChatOut)
def update_chat(chat_id: str, req: ChatUpdateRequest, request: Request) -> ChatOut:
    chat = _get_container(request).chat_service.update_chat_profile(
        chat_id,
        first_name=req.first_name,
        last_name=req.last_name,
    )
    return ChatOut.from_chat(chat)


@router.delete("/{chat_id}", response_model=StatusMessage)
def delete_chat(chat_id: str, request: Request) -> StatusMessage:
    _get_container(request).chat_service.delete_chat(chat_id)
    logger.info("chat_delete trace_id=%s chat_id=%s", _trace_id(request), chat_id)
    return StatusMessage(message="Chat deleted")
