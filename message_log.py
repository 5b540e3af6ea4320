import time
import uuid
from typing import Optional

from pydantic import ValidationError

from backend import RedisBackend
from constants import EVENT_MESSAGE, MAX_SENDER_LENGTH, MAX_TEXT_LENGTH
from errors import InvalidInput, RoomNotFound
from logging_config import get_logger
from redis_keys import REDIS_ROOM_CHANNEL, room_keys
from registry import RoomRegistry, validate_room_id
from schemas.rooms import Message

logger = get_logger(__name__)


def _clean(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field} must be a non-empty string")
    value = value.strip()
    if len(value) > max_length:
        raise InvalidInput(f"{field} must be at most {max_length} characters")
    return value


class MessageLog:
    """Append-only message history of a room.

    The history list, the housekeeping marker and the connected list are
    re-expired to the room record's remaining lifetime on every append, so
    history never outlives the membership it belongs to.
    """

    def __init__(self, backend: RedisBackend, registry: RoomRegistry):
        self.backend = backend
        self.registry = registry

    def append(self, room_id: str, token: Optional[str], sender: str, text: str) -> Message:
        validate_room_id(room_id)
        sender = _clean(sender, "sender", MAX_SENDER_LENGTH)
        text = _clean(text, "text", MAX_TEXT_LENGTH)

        self.registry.require_live_member(room_id, token)

        message = Message(
            id=uuid.uuid4().hex,
            sender=sender,
            text=text,
            timestamp=int(time.time() * 1000),
            room_id=room_id,
            token=token,
        )
        keys = room_keys(room_id)
        # Guarded on the record key: a destroy that lands first makes this a no-op
        ttl_ms = self.backend.append_aligned(
            keys["meta"],
            keys["messages"],
            message.model_dump_json(),
            keys["history"],
            align_keys=[keys["connected"]],
        )
        if ttl_ms is None:
            logger.warning(f"Message to room {room_id} dropped: room destroyed or expired")
            raise RoomNotFound()

        logger.info(f"Message {message.id} appended to room {room_id}, history TTL {ttl_ms}ms")
        self.backend.publish(
            REDIS_ROOM_CHANNEL.format(slug=room_id),
            EVENT_MESSAGE,
            message.model_dump(exclude={"token"}),
        )
        return message

    def list(self, room_id: str, token: Optional[str]) -> list:
        """Messages in append order, each carrying `token` only for its own sender."""
        validate_room_id(room_id)
        self.registry.require_live_member(room_id, token)

        messages = []
        for raw in self.backend.read_list(room_keys(room_id)["messages"]):
            try:
                message = Message.model_validate_json(raw)
            except ValidationError as e:
                logger.error(f"Skipping unreadable message in room {room_id}: {e}")
                continue
            if message.token == token:
                messages.append(message.model_dump())
            else:
                messages.append(message.model_dump(exclude={"token"}))
        logger.debug(f"Listed {len(messages)} messages for room {room_id}")
        return messages
