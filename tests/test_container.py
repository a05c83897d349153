from pathlib import Path

import pytest

from chathub.container import build_container


def test_build_container_reads_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHATHUB_STORE_FILE", str(tmp_path / "chats.json"))
    monkeypatch.setenv("CHATHUB_AUTO_REPLY_DELAY_SEC", "1.5")
    monkeypatch.setenv("CHATHUB_RANDOM_MESSAGE_INTERVAL_SEC", "2")
    monkeypatch.setenv("CHATHUB_SEED_CHATS", "off")
    monkeypatch.setenv("CHATHUB_CORS_ORIGINS", "http://localhost:3000, http://example.test")

    container = build_container()

    assert container.chat_store.storage_path == str(tmp_path / "chats.json")
    assert container.auto_reply_scheduler.delay_sec == 1.5
    assert container.random_message_generator.interval_sec == 2.0
    assert container.seed_chats is False
    assert container.cors_origins == ["http://localhost:3000", "http://example.test"]


def test_build_container_falls_back_on_bad_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHATHUB_STORE_FILE", "")
    monkeypatch.setenv("CHATHUB_AUTO_REPLY_DELAY_SEC", "soon")
    monkeypatch.setenv("CHATHUB_SEED_CHATS", "maybe")
    monkeypatch.delenv("CHATHUB_RANDOM_MESSAGE_INTERVAL_SEC", raising=False)
    monkeypatch.delenv("CHATHUB_CORS_ORIGINS", raising=False)

    container = build_container()

    assert container.chat_store.storage_path is None
    assert container.auto_reply_scheduler.delay_sec == 3.0
    assert container.random_message_generator.interval_sec == 5.0
    assert container.seed_chats is True
    assert container.cors_origins == ["*"]
