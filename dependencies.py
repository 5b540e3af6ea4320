from typing import Optional

from fastapi import Cookie, Request

from admission import AdmissionGate
from backend import RedisBackend
from constants import AUTH_COOKIE_NAME
from message_log import MessageLog
from registry import RoomRegistry


def get_backend(request: Request) -> RedisBackend:
    return request.app.state.backend


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def get_gate(request: Request) -> AdmissionGate:
    return request.app.state.gate


def get_message_log(request: Request) -> MessageLog:
    return request.app.state.message_log


def get_token(token: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME)) -> Optional[str]:
    return token
