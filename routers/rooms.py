from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from admission import AdmissionGate
from backend import RedisBackend
from constants import AUTH_COOKIE_NAME, COOKIE_SECURE, EVENT_DESTROY
from dependencies import get_backend, get_gate, get_message_log, get_registry, get_token
from errors import RoomNotFound, StoreUnavailable
from logging_config import get_logger
from message_log import MessageLog
from redis_keys import REDIS_ROOM_CHANNEL
from registry import RoomRegistry, validate_room_id
from schemas.rooms import (
    CreateRoomResponse,
    DestroyRoomResponse,
    JoinRoomResponse,
    MessageListResponse,
    MessageResponse,
    RoomTTLResponse,
    SendMessageRequest,
)

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def build_ws_url(request: Request, room_id: str) -> str:
    base_url = str(request.base_url).rstrip('/')
    ws_base = base_url.replace("http://", "ws://").replace("https://", "wss://")
    return f"{ws_base}/rooms/{room_id}/ws"


@rooms_router.post("/", status_code=201, response_model=CreateRoomResponse)
async def create_room(request: Request, registry: RoomRegistry = Depends(get_registry)):
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room creation request from {client_host}")
    room_id = registry.create_room()
    return CreateRoomResponse(room_id=room_id, expires_in=registry.ttl_seconds)


@rooms_router.post("/{room_id}/join", response_model=JoinRoomResponse)
async def join_room(
    room_id: str,
    request: Request,
    response: Response,
    token: Optional[str] = Depends(get_token),
    gate: AdmissionGate = Depends(get_gate),
    registry: RoomRegistry = Depends(get_registry),
):
    # RoomNotFound and RoomFull carry distinct reasons ("room-not-found", "room-full")
    # so the client can redirect back to the lobby with the right message.
    admission = gate.admit(room_id, existing_token=token)
    expires_in = registry.get_remaining_ttl(room_id)
    response.set_cookie(
        AUTH_COOKIE_NAME,
        admission.token,
        max_age=max(expires_in, 0),
        path="/",
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
    )
    return JoinRoomResponse(
        room_id=room_id,
        ws_url=build_ws_url(request, room_id),
        expires_in=expires_in,
        reused=admission.reused,
    )


@rooms_router.get("/{room_id}/ttl", response_model=RoomTTLResponse)
async def get_room_ttl(
    room_id: str,
    token: Optional[str] = Depends(get_token),
    registry: RoomRegistry = Depends(get_registry),
):
    validate_room_id(room_id)
    registry.require_live_member(room_id, token)
    return RoomTTLResponse(ttl=registry.get_remaining_ttl(room_id))


@rooms_router.post(
    "/{room_id}/messages",
    status_code=201,
    response_model=MessageResponse,
    response_model_exclude_none=True,
)
async def send_message(
    room_id: str,
    body: SendMessageRequest,
    token: Optional[str] = Depends(get_token),
    message_log: MessageLog = Depends(get_message_log),
):
    message = message_log.append(room_id, token, body.sender, body.text)
    return message.model_dump()


@rooms_router.get(
    "/{room_id}/messages",
    response_model=MessageListResponse,
    response_model_exclude_none=True,
)
async def list_messages(
    room_id: str,
    token: Optional[str] = Depends(get_token),
    message_log: MessageLog = Depends(get_message_log),
):
    return {"messages": message_log.list(room_id, token)}


@rooms_router.delete("/{room_id}", response_model=DestroyRoomResponse)
async def destroy_room(
    room_id: str,
    token: Optional[str] = Depends(get_token),
    registry: RoomRegistry = Depends(get_registry),
    backend: RedisBackend = Depends(get_backend),
):
    validate_room_id(room_id)
    try:
        registry.require_live_member(room_id, token)
    except RoomNotFound:
        # Someone else got there first, or it expired
        logger.info(f"Destroy request for room {room_id}: already gone")
        return DestroyRoomResponse(destroyed=True)

    if registry.destroy_room(room_id):
        # Only the call that actually removed the record announces it. The delete has
        # committed, so a failed publish is logged rather than turned into a 503.
        try:
            backend.publish(REDIS_ROOM_CHANNEL.format(slug=room_id), EVENT_DESTROY, {"is_destroyed": True})
        except StoreUnavailable:
            logger.error(f"Room {room_id} destroyed but the destroy event could not be published", exc_info=True)
    return DestroyRoomResponse(destroyed=True)
