from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """Push connection backed by a FastAPI WebSocket.

    ``send`` may be called from any thread: frames are handed to the socket's event loop
    and written out by ``pump``, which owns the socket until the client goes away.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self._websocket = websocket
        self._loop = loop
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False

    @property
    def is_open(self) -> bool:
        if self._closed or self._loop.is_closed():
            return False
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, frame: str) -> None:
        if not self.is_open:
            return
        self._loop.call_soon_threadsafe(self._outbox.put_nowait, frame)

    def close(self) -> None:
        self._closed = True

    async def pump(self) -> None:
        writer = asyncio.create_task(self._write_frames())
        try:
            while True:
                incoming = await self._websocket.receive()
                if incoming["type"] == "websocket.disconnect":
                    break
                payload = incoming.get("text") or incoming.get("bytes") or ""
                logger.info("push_received len=%s", len(payload))
        except WebSocketDisconnect:
            pass
        finally:
            self._closed = True
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

    async def _write_frames(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._websocket.send_text(frame)
            except (WebSocketDisconnect, RuntimeError):
                logger.info("push_write_stopped")
                self._closed = True
                return
