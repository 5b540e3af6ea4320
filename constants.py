import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))
# Every store call must finish or fail within these bounds
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2.0))
REDIS_CONNECT_TIMEOUT = float(os.getenv("REDIS_CONNECT_TIMEOUT", 2.0))

ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 600))
MAX_ROOM_MEMBERS = 2

MAX_SENDER_LENGTH = 100
MAX_TEXT_LENGTH = 1000

AUTH_COOKIE_NAME = "x-auth-token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

EVENT_MESSAGE = "chat.message"
EVENT_DESTROY = "chat.destroy"
