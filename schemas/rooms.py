from pydantic import BaseModel, Field
from typing import Optional

from constants import MAX_SENDER_LENGTH, MAX_TEXT_LENGTH


class Message(BaseModel):
    id: str
    sender: str
    text: str
    timestamp: int  # epoch milliseconds
    room_id: str
    token: Optional[str] = None

class CreateRoomResponse(BaseModel):
    room_id: str
    expires_in: int

class JoinRoomResponse(BaseModel):
    room_id: str
    ws_url: str
    expires_in: int
    reused: bool

class RoomTTLResponse(BaseModel):
    ttl: int

class SendMessageRequest(BaseModel):
    sender: str = Field(..., min_length=1, max_length=MAX_SENDER_LENGTH)
    text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)

class MessageResponse(BaseModel):
    id: str
    sender: str
    text: str
    timestamp: int
    room_id: str
    token: Optional[str] = None

class MessageListResponse(BaseModel):
    messages: list[MessageResponse]

class DestroyRoomResponse(BaseModel):
    destroyed: bool
