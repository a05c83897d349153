from __future__ import annotations

import asyncio

from fastapi import APIRouter, WebSocket

from chathub.container import ServiceContainer
from chathub.services.websocket_connection import WebSocketConnection

router = APIRouter(tags=["push"])


@router.websocket("/")
@router.websocket("/ws")
async def push_subscribe(websocket: WebSocket) -> None:
    container: ServiceContainer = websocket.app.state.container
    await websocket.accept()
    connection = WebSocketConnection(websocket, asyncio.get_running_loop())
    hub = container.notification_hub
    hub.subscribe(connection)
    try:
        await connection.pump()
    finally:
        connection.close()
        hub.unsubscribe(connection)
