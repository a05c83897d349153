from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from time import sleep

import pytest

from chathub.errors import NotFoundError, ValidationError
from chathub.services.chat_locks import ChatLockRegistry
from chathub.services.chat_service import ChatService
from chathub.services.chat_store import ChatStore


def _service() -> ChatService:
    return ChatService(store=ChatStore())


def test_create_chat_derives_last_message_from_initial_messages() -> None:
    service = _service()

    chat = service.create_chat(
        first_name="Alice",
        last_name="Freeman",
        initial_messages=[
            {"text": "Hi, how are you?", "isMe": False},
            {"text": "How was your meeting?", "isMe": True},
        ],
    )

    assert chat.last_message == "How was your meeting?"
    assert [item.is_me for item in chat.messages] == [False, True]
    assert all(item.id for item in chat.messages)


def test_create_chat_without_messages_has_empty_last_message() -> None:
    chat = _service().create_chat(first_name="A", last_name="B", initial_messages=[])

    assert chat.last_message == ""
    assert chat.messages == []


@pytest.mark.parametrize(
    ("first_name", "last_name"),
    [(None, "B"), ("A", None), ("", "B"), ("A", "   ")],
)
def test_create_chat_requires_both_names(first_name: str | None, last_name: str | None) -> None:
    with pytest.raises(ValidationError):
        _service().create_chat(first_name=first_name, last_name=last_name)


def test_append_message_updates_last_message_and_returns_fresh_chat() -> None:
    service = _service()
    chat = service.create_chat(first_name="A", last_name="B")

    updated, message = service.append_message(chat.id, text="hi", is_me=True)

    assert updated.last_message == "hi"
    assert len(updated.messages) == 1
    assert updated.messages[0].id == message.id
    assert message.is_me is True
    assert service.get_chat(chat.id).last_message == "hi"


def test_append_message_to_missing_chat_raises() -> None:
    with pytest.raises(NotFoundError):
        _service().append_message("missing", text="hi", is_me=True)


def test_append_message_requires_text() -> None:
    service = _service()
    chat = service.create_chat(first_name="A", last_name="B")

    with pytest.raises(ValidationError):
        service.append_message(chat.id, text=None, is_me=True)


def test_concurrent_appends_to_same_chat_lose_nothing() -> None:
    service = _service()
    chat = service.create_chat(
        first_name="A",
        last_name="B",
        initial_messages=[{"text": "seed", "isMe": False}],
    )
    total = 64

    def _append(index: int) -> None:
        service.append_message(chat.id, text=f"m{index}", is_me=True)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_append, range(total)))

    stored = service.get_chat(chat.id)
    texts = [item.text for item in stored.messages]
    assert len(texts) == total + 1
    assert sorted(texts[1:]) == sorted(f"m{index}" for index in range(total))
    assert len({item.id for item in stored.messages}) == total + 1
    assert stored.last_message == texts[-1]


def test_two_concurrent_appends_both_survive() -> None:
    service = _service()
    chat = service.create_chat(first_name="A", last_name="B")
    barrier = Barrier(2)

    def _append(text: str) -> None:
        barrier.wait()
        service.append_message(chat.id, text=text, is_me=True)

    with ThreadPoolExecutor(max_workers=2) as pool:
        list(pool.map(_append, ["x", "y"]))

    texts = [item.text for item in service.get_chat(chat.id).messages]
    assert sorted(texts) == ["x", "y"]


def test_update_chat_profile_changes_only_names() -> None:
    service = _service()
    chat = service.create_chat(
        first_name="A",
        last_name="B",
        initial_messages=[{"text": "keep", "isMe": True}],
    )

    updated = service.update_chat_profile(chat.id, first_name="C", last_name="D")

    assert (updated.first_name, updated.last_name) == ("C", "D")
    assert updated.last_message == "keep"
    assert [item.text for item in updated.messages] == ["keep"]


def test_update_chat_profile_validates_before_lookup() -> None:
    service = _service()
    with pytest.raises(ValidationError):
        service.update_chat_profile("missing", first_name="", last_name="D")
    with pytest.raises(NotFoundError):
        service.update_chat_profile("missing", first_name="C", last_name="D")


def test_delete_chat_removes_it_from_listing() -> None:
    service = _service()
    keep = service.create_chat(first_name="Keep", last_name="Me")
    drop = service.create_chat(first_name="Drop", last_name="Me")

    deleted = service.delete_chat(drop.id)

    assert deleted.id == drop.id
    assert [chat.id for chat in service.list_chats()] == [keep.id]
    with pytest.raises(NotFoundError):
        service.delete_chat(drop.id)


def test_update_message_text_keeps_last_message() -> None:
    service = _service()
    chat = service.create_chat(first_name="A", last_name="B")
    _, message = service.append_message(chat.id, text="original", is_me=True)

    updated = service.update_message_text(chat.id, message.id, text="edited")

    assert updated.messages[-1].text == "edited"
    assert updated.last_message == "original"


def test_update_message_text_reports_missing_chat_or_message() -> None:
    service = _service()
    chat = service.create_chat(first_name="A", last_name="B")

    with pytest.raises(NotFoundError, match="Chat not found"):
        service.update_message_text("missing", "m", text="x")
    with pytest.raises(NotFoundError, match="Message not found"):
        service.update_message_text(chat.id, "missing", text="x")


def test_lock_registry_drops_idle_locks() -> None:
    locks = ChatLockRegistry()

    with locks.hold("chat_a"):
        with locks.hold("chat_b"):
            assert locks.active_count() == 2

    assert locks.active_count() == 0


class _SlowReadStore(ChatStore):
    def find_by_id(self, chat_id: str):  # type: ignore[no-untyped-def]
        chat = super().find_by_id(chat_id)
        sleep(0.005)
        return chat


def test_appends_serialize_even_when_reads_are_slow() -> None:
    service = ChatService(store=_SlowReadStore())
    chat = service.create_chat(first_name="A", last_name="B")
    other = service.create_chat(first_name="C", last_name="D")

    def _append(index: int) -> None:
        target = chat.id if index % 2 == 0 else other.id
        service.append_message(target, text=f"m{index}", is_me=False)

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(_append, range(20)))

    assert len(service.get_chat(chat.id).messages) == 10
    assert len(service.get_chat(other.id).messages) == 10


def test_created_at_follows_message_order_under_contention() -> None:
    service = ChatService(store=_SlowReadStore())
    chat = service.create_chat(first_name="A", last_name="B")

    def _append(index: int) -> None:
        service.append_message(chat.id, text=f"m{index}", is_me=True)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_append, range(16)))

    stamps = [item.created_at for item in service.get_chat(chat.id).messages]
    assert len(stamps) == 16
    assert stamps == sorted(stamps)
