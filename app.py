import asyncio
import json
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admission import AdmissionGate
from backend import RedisBackend, build_backend
from constants import AUTH_COOKIE_NAME, CORS_ORIGINS, EVENT_DESTROY
from errors import RoomError, StoreUnavailable
from logging_config import get_logger, setup_logging
from message_log import MessageLog
from redis_keys import REDIS_ROOM_CHANNEL
from registry import RoomRegistry, validate_room_id
from routers.rooms import rooms_router

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


def wire_components(app: FastAPI, backend: RedisBackend):
    """Attach the store and the components built on it. Done once per process."""
    registry = RoomRegistry(backend)
    app.state.backend = backend
    app.state.registry = registry
    app.state.gate = AdmissionGate(registry)
    app.state.message_log = MessageLog(backend, registry)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "backend", None) is None:
        wire_components(app, build_backend())
    yield


async def room_error_handler(request: Request, exc: RoomError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.reason}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "reason": exc.reason})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(f"{request.method} {request.url.path} -> 422 invalid-input")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "reason": "invalid-input"},
    )


async def relay_room_events(pubsub, websocket: WebSocket, room_id: str):
    """Forward room events from Redis pub/sub to one websocket until the room is destroyed."""
    loop = asyncio.get_running_loop()
    try:
        while True:
            # Blocking get_message() runs in the thread pool with a timeout
            message = await loop.run_in_executor(None, lambda: pubsub.get_message(timeout=1.0))
            if message is None or message.get("type") != "message":
                continue
            try:
                event = json.loads(message["data"])
            except json.JSONDecodeError as e:
                logger.error(f"Error parsing event from Redis for room {room_id}: {e}")
                continue
            await websocket.send_text(json.dumps(event))
            if event.get("event") == EVENT_DESTROY:
                logger.info(f"Room {room_id} destroyed, closing websocket")
                await websocket.close(code=1000, reason="Room destroyed")
                return
    finally:
        pubsub.close()
        logger.debug(f"Closed pub/sub connection for room: {room_id}")


async def drain_client(websocket: WebSocket):
    """Clients only listen; read and drop anything they send until they disconnect."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected by client")


def create_app(backend: Optional[RedisBackend] = None) -> FastAPI:
    app = FastAPI(title="pairchat", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RoomError, room_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(rooms_router)

    if backend is not None:
        wire_components(app, backend)

    @app.get("/health")
    async def health(request: Request):
        try:
            redis_ok = request.app.state.backend.ping()
        except StoreUnavailable:
            redis_ok = False
        return {"status": "ok" if redis_ok else "degraded", "redis": redis_ok}

    @app.websocket("/rooms/{room_id}/ws")
    async def websocket_endpoint(room_id: str, websocket: WebSocket):
        """Room event feed. Requires the auth cookie of a connected member."""
        registry: RoomRegistry = websocket.app.state.registry
        token = websocket.cookies.get(AUTH_COOKIE_NAME)
        try:
            validate_room_id(room_id)
            registry.require_live_member(room_id, token)
            # Subscribe before accepting so nothing published after the handshake is missed
            pubsub = websocket.app.state.backend.subscribe(REDIS_ROOM_CHANNEL.format(slug=room_id))
        except RoomError as e:
            logger.info(f"WebSocket connection rejected for room {room_id}: {e.reason}")
            await websocket.close(code=1008, reason=e.detail)
            return

        await websocket.accept()
        logger.info(f"WebSocket connection accepted for room: {room_id}")

        relay = asyncio.create_task(relay_room_events(pubsub, websocket, room_id))
        drain = asyncio.create_task(drain_client(websocket))
        done, pending = await asyncio.wait({relay, drain}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() is not None:
                logger.error(f"WebSocket error in room {room_id}: {task.exception()}", exc_info=task.exception())
                await websocket.close(code=1011)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
