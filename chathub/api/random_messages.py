from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from chathub.container import ServiceContainer
from chathub.schemas import RandomMessagesStateResponse, RandomMessagesToggleResponse

router = APIRouter(prefix="/api", tags=["random-messages"])
logger = logging.getLogger(__name__)


def _get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@router.post("/start-random-messages", response_model=RandomMessagesToggleResponse)
def start_random_messages(request: Request) -> RandomMessagesToggleResponse:
    result = _get_container(request).random_message_generator.start()
    logger.info("random_messages_start changed=%s", result.changed)
    return RandomMessagesToggleResponse(message=result.message, enabled=result.enabled)


@router.post("/stop-random-messages", response_model=RandomMessagesToggleResponse)
def stop_random_messages(request: Request) -> RandomMessagesToggleResponse:
    result = _get_container(request).random_message_generator.stop()
    logger.info("random_messages_stop changed=%s", result.changed)
    return RandomMessagesToggleResponse(message=result.message, enabled=result.enabled)


@router.get("/random-messages", response_model=RandomMessagesStateResponse)
def random_messages_state(request: Request) -> RandomMessagesStateResponse:
    generator = _get_container(request).random_message_generator
    return RandomMessagesStateResponse(
        enabled=generator.is_running,
        interval_sec=generator.interval_sec,
    )
