from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from threading import RLock
from typing import Any

from chathub.errors import StoreError
from chathub.models import Chat

_STORE_BACKUP_KEEP = 3
_STORE_VERSION = 1
_IMMUTABLE_FIELDS = {"_id"}
logger = logging.getLogger(__name__)


class ChatStore:
    """Key-document store for chats, optionally persisted to a JSON file.

    Documents are kept in their camelCase wire shape. Reads hand out freshly built
    ``Chat`` objects, so callers never share state with the store or with each other.
    A write is applied to a copy of the collection first and only becomes visible once
    the file write succeeded.

    One store-wide lock covers the swap and the file write, so writes to different chats
    queue behind each other on disk IO. Ordering between chats is not needed, only that
    the file never lags the in-memory collection.
    """

    def __init__(self, storage_path: str | None = None) -> None:
        self._storage_path = (storage_path or "").strip() or None
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = RLock()
        self._last_save_ok = True
        self._last_save_error: str | None = None
        self._restored_from = "memory"
        if self._storage_path is not None:
            self._restore()

    @property
    def storage_path(self) -> str | None:
        return self._storage_path

    def find(self, query: dict[str, Any] | None = None) -> list[Chat]:
        criteria = query or {}
        with self._lock:
            docs = [
                doc
                for doc in self._docs.values()
                if all(doc.get(key) == value for key, value in criteria.items())
            ]
            return [Chat.from_document(_copy_doc(doc)) for doc in docs]

    def find_by_id(self, chat_id: str) -> Chat | None:
        with self._lock:
            doc = self._docs.get(chat_id)
            if doc is None:
                return None
            return Chat.from_document(_copy_doc(doc))

    def count(self) -> int:
        with self._lock:
            return len(self._docs)

    def create(self, doc: dict[str, Any]) -> Chat:
        chat = Chat.from_document(doc)
        with self._lock:
            if chat.id in self._docs:
                raise StoreError(f"duplicate chat id: {chat.id}")
            next_docs = dict(self._docs)
            next_docs[chat.id] = chat.to_document()
            self._commit(next_docs)
        return Chat.from_document(chat.to_document())

    def update_by_id(self, chat_id: str, fields: dict[str, Any]) -> Chat | None:
        changes = {key: value for key, value in fields.items() if key not in _IMMUTABLE_FIELDS}
        with self._lock:
            current = self._docs.get(chat_id)
            if current is None:
                return None
            updated = _copy_doc(current)
            updated.update(changes)
            next_docs = dict(self._docs)
            next_docs[chat_id] = updated
            self._commit(next_docs)
            return Chat.from_document(_copy_doc(updated))

    def delete_by_id(self, chat_id: str) -> Chat | None:
        with self._lock:
            current = self._docs.get(chat_id)
            if current is None:
                return None
            next_docs = dict(self._docs)
            next_docs.pop(chat_id)
            self._commit(next_docs)
            return Chat.from_document(current)

    def save(self, chat: Chat) -> Chat | None:
        """Replace the stored document with ``chat``; returns None if it was deleted meanwhile."""
        doc = chat.to_document()
        with self._lock:
            if chat.id not in self._docs:
                return None
            next_docs = dict(self._docs)
            next_docs[chat.id] = doc
            self._commit(next_docs)
        return Chat.from_document(_copy_doc(doc))

    def persistence_snapshot(self) -> dict[str, Any]:
        return {
            "enabled": self._storage_path is not None,
            "path": self._storage_path,
            "restored_from": self._restored_from,
            "last_save_ok": self._last_save_ok,
            "last_save_error": self._last_save_error,
        }

    def _commit(self, next_docs: dict[str, dict[str, Any]]) -> None:
        if self._storage_path is not None:
            payload = {"version": _STORE_VERSION, "chats": list(next_docs.values())}
            self._write_payload_atomic(payload=payload)
        self._docs = next_docs

    def _restore(self) -> None:
        payload, source = self._load_payload_for_restore()
        self._restored_from = source
        if payload is None:
            return
        raw_chats = payload.get("chats")
        if not isinstance(raw_chats, list):
            logger.warning("chat_store_invalid_payload path=%s", self._storage_path)
            return
        for raw in raw_chats:
            if not isinstance(raw, dict):
                continue
            chat = Chat.from_document(raw)
            self._docs[chat.id] = chat.to_document()
        logger.info(
            "chat_store_restored path=%s source=%s chats=%s",
            self._storage_path,
            source,
            len(self._docs),
        )

    def _load_payload_for_restore(self) -> tuple[dict[str, Any] | None, str]:
        assert self._storage_path is not None
        sources = {"primary": self._storage_path}
        sources.update(
            (f"backup_{index}", path) for index, path in enumerate(self._backup_paths(), start=1)
        )
        for source, path in sources.items():
            payload = _load_json_object(path)
            if payload is not None:
                return payload, source
        return None, "missing"

    def _backup_paths(self) -> list[str]:
        return [f"{self._storage_path}.bak{index}" for index in range(1, _STORE_BACKUP_KEEP + 1)]

    def _rotate_backups(self) -> None:
        assert self._storage_path is not None
        backups = self._backup_paths()
        # .bak2 -> .bak3 before .bak1 -> .bak2, then the live file becomes .bak1
        for newer, older in reversed(list(zip(backups, backups[1:]))):
            if not os.path.exists(newer):
                continue
            try:
                os.replace(newer, older)
            except OSError as exc:
                logger.warning("chat_store_backup_shift_failed src=%s err=%s", newer, exc)
        if not os.path.exists(self._storage_path):
            return
        try:
            shutil.copy2(self._storage_path, backups[0])
        except OSError as exc:
            logger.warning("chat_store_backup_copy_failed path=%s err=%s", self._storage_path, exc)

    def _write_payload_atomic(self, *, payload: dict[str, Any]) -> None:
        assert self._storage_path is not None
        directory = os.path.dirname(self._storage_path) or "."
        temp_path: str | None = None
        try:
            os.makedirs(directory, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                prefix=".chathub_store_",
                suffix=".tmp",
                dir=directory,
                text=True,
            )
            with os.fdopen(temp_fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            self._rotate_backups()
            os.replace(temp_path, self._storage_path)
            self._last_save_ok = True
            self._last_save_error = None
        except OSError as exc:
            self._last_save_ok = False
            self._last_save_error = str(exc)
            logger.warning("chat_store_atomic_write_failed path=%s err=%s", self._storage_path, exc)
            raise StoreError(f"failed to persist chats: {exc}") from exc
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass


def _copy_doc(doc: dict[str, Any]) -> dict[str, Any]:
    copied = dict(doc)
    messages = doc.get("messages")
    if isinstance(messages, list):
        copied["messages"] = [dict(item) for item in messages]
    return copied


def _load_json_object(path: str) -> dict[str, Any] | None:
    if not os.path.exists(path):
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("chat_store_unreadable path=%s err=%s", path, exc)
        return None
    return payload if isinstance(payload, dict) else None
