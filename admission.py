import secrets
from dataclasses import dataclass
from typing import Optional

from errors import RoomFull, RoomNotFound
from logging_config import get_logger
from registry import AdmitResult, RoomRegistry, validate_room_id

logger = get_logger(__name__)


def mint_token() -> str:
    return secrets.token_urlsafe(24)


@dataclass
class Admission:
    room_id: str
    token: str
    reused: bool


class AdmissionGate:
    """Decides whether a client may enter a room, and with which token.

    Room states as seen from here:
        NonExistent -> Active(0) -> Active(1) -> Active(2, full) -> NonExistent
    Destroy or TTL expiry jumps straight to NonExistent from any Active state.
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

    def admit(self, room_id: str, existing_token: Optional[str] = None) -> Admission:
        validate_room_id(room_id)

        if self.registry.get_room(room_id) is None:
            logger.warning(f"Admission to {room_id} rejected: room not found")
            raise RoomNotFound()

        # Page refresh by someone already inside, allowed even when the room is full
        if existing_token and self.registry.is_token_connected(room_id, existing_token):
            logger.info(f"Admission to {room_id}: existing member re-entered")
            return Admission(room_id=room_id, token=existing_token, reused=True)

        token = mint_token()
        result = self.registry.admit_token(room_id, token)

        if result is AdmitResult.FULL:
            logger.warning(f"Admission to {room_id} rejected: room is full")
            raise RoomFull()
        if result is AdmitResult.ROOM_NOT_FOUND:
            # Expired or destroyed after the existence check
            logger.warning(f"Admission to {room_id} rejected: room vanished during admission")
            raise RoomNotFound()

        logger.info(f"Admission to {room_id}: new member admitted")
        return Admission(room_id=room_id, token=token, reused=False)
