import enum
import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from backend import AppendOutcome, RedisBackend
from constants import MAX_ROOM_MEMBERS, ROOM_TTL_SECONDS
from errors import InvalidInput, RoomNotFound, Unauthorized
from logging_config import get_logger
from redis_keys import room_keys

logger = get_logger(__name__)

ROOM_ID_RE = re.compile(r"^[0-9a-f]{32}$")
TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


class AdmitResult(enum.Enum):
    ADMITTED = "admitted"
    ALREADY_MEMBER = "already_member"
    FULL = "full"
    ROOM_NOT_FOUND = "room_not_found"


def validate_room_id(room_id: str) -> str:
    if not isinstance(room_id, str) or not ROOM_ID_RE.match(room_id):
        raise InvalidInput("Malformed room id")
    return room_id


def is_wellformed_token(token: Optional[str]) -> bool:
    return isinstance(token, str) and bool(TOKEN_RE.match(token))


class RoomRegistry:
    """Room records and their connected-token lists.

    A room exists exactly as long as its meta key does. Nothing here writes
    an expiry flag: Redis drops the keys and every lookup reports "not found".
    """

    def __init__(self, backend: RedisBackend, ttl_seconds: int = ROOM_TTL_SECONDS, max_members: int = MAX_ROOM_MEMBERS):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.max_members = max_members

    def create_room(self) -> str:
        room_id = uuid.uuid4().hex
        keys = room_keys(room_id)
        self.backend.set_record(
            keys["meta"],
            {"created_at": datetime.now(timezone.utc).isoformat()},
            ttl_ms=self.ttl_seconds * 1000,
        )
        logger.info(f"Room {room_id} created with TTL {self.ttl_seconds} seconds")
        return room_id

    def get_room(self, room_id: str) -> Optional[dict]:
        validate_room_id(room_id)
        return self.backend.get_record(room_keys(room_id)["meta"])

    def get_remaining_ttl(self, room_id: str) -> int:
        """Seconds left for the room. Re-aligns the sibling keys to the record while reading."""
        validate_room_id(room_id)
        keys = room_keys(room_id)
        ttl_ms = self.backend.align_ttl(keys["meta"], [keys["connected"], keys["messages"], keys["history"]])
        if ttl_ms is None:
            logger.debug(f"TTL lookup: room {room_id} not found")
            raise RoomNotFound()
        if ttl_ms < 0:
            # No expiry on the record; should not happen for rooms created here
            return ttl_ms
        return (ttl_ms + 500) // 1000

    def is_token_connected(self, room_id: str, token: Optional[str]) -> bool:
        if not is_wellformed_token(token):
            return False
        validate_room_id(room_id)
        connected = self.backend.read_list(room_keys(room_id)["connected"])
        return token in connected

    def admit_token(self, room_id: str, token: str) -> AdmitResult:
        if not is_wellformed_token(token):
            raise InvalidInput("Malformed token")
        if self.is_token_connected(room_id, token):
            return AdmitResult.ALREADY_MEMBER
        keys = room_keys(room_id)
        # Capacity check and append run as one script, never as read-then-write
        outcome = self.backend.append_bounded(keys["meta"], keys["connected"], token, self.max_members)
        if outcome is AppendOutcome.MISSING:
            return AdmitResult.ROOM_NOT_FOUND
        if outcome is AppendOutcome.REJECTED:
            return AdmitResult.FULL
        return AdmitResult.ADMITTED

    def require_live_member(self, room_id: str, token: Optional[str]):
        """Raise unless `token` is in the live room's connected list.

        The record is only read after the membership check misses, so a destroy or
        expiry landing in between reports RoomNotFound, never Unauthorized. A live
        room and a foreign token give Unauthorized.
        """
        if self.is_token_connected(room_id, token):
            return
        if self.get_room(room_id) is None:
            logger.debug(f"Membership check for room {room_id}: room is gone")
            raise RoomNotFound()
        logger.warning(f"Rejected token for room {room_id}: not a member")
        raise Unauthorized()

    def destroy_room(self, room_id: str) -> bool:
        """Delete every key of the room. Returns True only if this call removed it."""
        validate_room_id(room_id)
        keys = room_keys(room_id)
        removed = self.backend.delete_guarded(keys["meta"], keys["connected"], keys["messages"], keys["history"])
        if removed:
            logger.info(f"Room {room_id} destroyed")
        else:
            logger.debug(f"Destroy of room {room_id}: already gone")
        return removed
