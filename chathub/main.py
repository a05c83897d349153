import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from chathub.api.chats import router as chats_router
from chathub.api.push import router as push_router
from chathub.api.random_messages import router as random_messages_router
from chathub.container import build_container
from chathub.errors import NotFoundError, StoreError, ValidationError
from chathub.seed import seed_initial_chats

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):  # type: ignore[no-untyped-def]
    container = _app.state.container
    if container.seed_chats:
        seed_initial_chats(container.chat_service)
    _app.state.started_at = datetime.now(UTC).isoformat()
    yield
    _app.state.container.shutdown()
    logger.info("chathub_shutdown")


app = FastAPI(title="Chathub Backend", version="0.1.0", lifespan=lifespan)
app.state.container = build_container()
app.add_middleware(
    CORSMiddleware,
    allow_origins=app.state.container.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_trace_id(request: Request, call_next):  # type: ignore[no-untyped-def]
    trace_id = request.headers.get("x-trace-id") or str(uuid4())
    request.state.trace_id = trace_id
    response = await call_next(request)
    response.headers["x-trace-id"] = trace_id
    return response


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(exc)})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.info("request_invalid path=%s errors=%s", request.url.path, exc.errors()[:3])
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": "Invalid request"})


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": str(exc)})


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(
        "store_error trace_id=%s path=%s err=%s",
        getattr(request.state, "trace_id", None),
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Server error"},
    )


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Server error"},
    )


@app.get("/", response_class=PlainTextResponse)
def welcome() -> str:
    return "Welcome to the Chat API!"


@app.get("/healthz")
def healthz() -> dict[str, object]:
    container = app.state.container
    return {
        "status": "ok",
        "service": "chathub-backend",
        "chat_total": container.chat_store.count(),
        "subscriber_total": container.notification_hub.subscriber_count(),
        "pending_auto_replies": container.auto_reply_scheduler.pending_count(),
        "random_messages_enabled": container.random_message_generator.is_running,
        "persistence": container.chat_store.persistence_snapshot(),
    }


app.include_router(chats_router)
app.include_router(random_messages_router)
app.include_router(push_router)
