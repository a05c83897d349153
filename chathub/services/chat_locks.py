from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class _LockEntry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class ChatLockRegistry:
    """One lock per chat id, created on demand and dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, chat_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(chat_id)
            if entry is None:
                entry = _LockEntry()
                self._entries[chat_id] = entry
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0 and self._entries.get(chat_id) is entry:
                    self._entries.pop(chat_id, None)

    def active_count(self) -> int:
        with self._guard:
            return len(self._entries)
