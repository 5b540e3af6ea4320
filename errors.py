class RoomError(Exception):
    """Base for every outcome the request boundary reports to the caller."""

    status_code = 400
    reason = "error"
    default_detail = "Request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class RoomNotFound(RoomError):
    """Room never existed, expired, or was destroyed. These are not told apart."""

    status_code = 404
    reason = "room-not-found"
    default_detail = "Room not found"


class RoomFull(RoomError):
    status_code = 403
    reason = "room-full"
    default_detail = "Room is full"


class Unauthorized(RoomError):
    status_code = 401
    reason = "unauthorized"
    default_detail = "Not a member of this room"


class StoreUnavailable(RoomError):
    """Redis could not be reached or timed out. The only retryable kind."""

    status_code = 503
    reason = "store-unavailable"
    default_detail = "Storage backend unavailable"


class InvalidInput(RoomError):
    status_code = 422
    reason = "invalid-input"
    default_detail = "Invalid input"
