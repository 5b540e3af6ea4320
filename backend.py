import enum
import functools
import json
from typing import Optional

import redis

from constants import (
    REDIS_CONNECT_TIMEOUT,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_SOCKET_TIMEOUT,
)
from errors import StoreUnavailable
from logging_config import get_logger

logger = get_logger(__name__)


class AppendOutcome(enum.Enum):
    APPENDED = "appended"
    REJECTED = "rejected"
    MISSING = "missing"


# KEYS[1] guard, KEYS[2] list. ARGV[1] value, ARGV[2] max length.
# The list inherits the guard's remaining lifetime.
APPEND_BOUNDED_LUA = """
local ttl = redis.call('PTTL', KEYS[1])
if ttl == -2 then
    return -1
end
local size = redis.call('LLEN', KEYS[2])
if size >= tonumber(ARGV[2]) then
    return 0
end
redis.call('RPUSH', KEYS[2], ARGV[1])
if ttl > 0 then
    redis.call('PEXPIRE', KEYS[2], ttl)
end
return size + 1
"""

# KEYS[1] guard, KEYS[2] list, KEYS[3] marker, KEYS[4..] other keys to align. ARGV[1] value.
APPEND_ALIGNED_LUA = """
local ttl = redis.call('PTTL', KEYS[1])
if ttl == -2 then
    return -2
end
redis.call('RPUSH', KEYS[2], ARGV[1])
if ttl > 0 then
    redis.call('PEXPIRE', KEYS[2], ttl)
    redis.call('SET', KEYS[3], '1', 'PX', ttl)
    for i = 4, #KEYS do
        redis.call('PEXPIRE', KEYS[i], ttl)
    end
else
    redis.call('SET', KEYS[3], '1')
end
return ttl
"""

# KEYS[1] guard, KEYS[2..] keys to align. Missing keys are left missing.
ALIGN_TTL_LUA = """
local ttl = redis.call('PTTL', KEYS[1])
if ttl == -2 then
    return -2
end
if ttl > 0 then
    for i = 2, #KEYS do
        redis.call('PEXPIRE', KEYS[i], ttl)
    end
end
return ttl
"""


def _store_call(func):
    """Surface any redis failure (connection, timeout, protocol) as StoreUnavailable."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis call {func.__name__} failed: {e}", exc_info=True)
            raise StoreUnavailable(f"Storage backend unavailable during {func.__name__}") from e

    return wrapper


class RedisBackend:
    """Key-value store and event broadcaster on top of one redis-py client.

    Every method is atomic against a single key, or runs as one Lua script /
    MULTI block when it has to look at a guard key before writing another.
    """

    def __init__(self, redis_client: redis.Redis, pubsub_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client
        # Pub/sub holds its connection in subscribe mode, keep it off the command pool if given one
        self.pubsub_client = pubsub_client or redis_client
        self._append_bounded = self.redis_client.register_script(APPEND_BOUNDED_LUA)
        self._append_aligned = self.redis_client.register_script(APPEND_ALIGNED_LUA)
        self._align_ttl = self.redis_client.register_script(ALIGN_TTL_LUA)

    @_store_call
    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    @_store_call
    def set_record(self, key: str, mapping: dict, ttl_ms: int):
        logger.debug(f"Writing record {key} with TTL {ttl_ms}ms")
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.hset(key, mapping=mapping)
        pipe.pexpire(key, ttl_ms)
        pipe.execute()

    @_store_call
    def get_record(self, key: str) -> Optional[dict]:
        data = self.redis_client.hgetall(key)
        if not data:
            logger.debug(f"Record {key} not found")
            return None
        return data

    @_store_call
    def read_list(self, key: str) -> list:
        return self.redis_client.lrange(key, 0, -1)

    @_store_call
    def append_bounded(self, guard_key: str, key: str, value: str, max_len: int) -> AppendOutcome:
        """Append to `key` only while `guard_key` exists and `key` holds fewer than max_len items."""
        result = int(self._append_bounded(keys=[guard_key, key], args=[value, max_len]))
        if result < 0:
            outcome = AppendOutcome.MISSING
        elif result == 0:
            outcome = AppendOutcome.REJECTED
        else:
            outcome = AppendOutcome.APPENDED
        logger.debug(f"Bounded append to {key} (max {max_len}): {outcome.value}")
        return outcome

    @_store_call
    def append_aligned(self, guard_key: str, key: str, value: str, marker_key: str, align_keys=()) -> Optional[int]:
        """Append to `key` while `guard_key` exists, then give `key`, `marker_key`
        and `align_keys` the guard's remaining lifetime. Returns that lifetime in ms,
        or None if the guard was gone and nothing was written."""
        ttl = int(self._append_aligned(keys=[guard_key, key, marker_key, *align_keys], args=[value]))
        if ttl == -2:
            logger.debug(f"Append to {key} refused: {guard_key} is gone")
            return None
        return ttl

    @_store_call
    def align_ttl(self, guard_key: str, keys) -> Optional[int]:
        ttl = int(self._align_ttl(keys=[guard_key, *keys]))
        if ttl == -2:
            return None
        return ttl

    @_store_call
    def delete_guarded(self, guard_key: str, *keys) -> bool:
        """Delete the guard and its dependents in one MULTI block.

        Returns True only for the caller whose DEL actually removed the guard.
        """
        pipe = self.redis_client.pipeline(transaction=True)
        pipe.delete(guard_key)
        if keys:
            pipe.delete(*keys)
        results = pipe.execute()
        logger.debug(f"Deleted {guard_key} and {len(keys)} dependent keys: {results}")
        return results[0] == 1

    @_store_call
    def publish(self, channel: str, event: str, payload: dict) -> int:
        """Fire-and-forget publish. Returns the subscriber count Redis reports."""
        message_json = json.dumps({"event": event, "data": payload})
        subscribers = self.redis_client.publish(channel, message_json)
        logger.debug(f"Published {event} to {channel}, {subscribers} subscribers")
        return subscribers

    @_store_call
    def subscribe(self, channel: str):
        logger.debug(f"Subscribing to Redis channel {channel}")
        pubsub = self.pubsub_client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(channel)
        return pubsub


def build_backend() -> RedisBackend:
    """Connect to the configured Redis. Called once at process start."""
    redis_client = redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        password=REDIS_PASSWORD,
        db=REDIS_DB,
        socket_timeout=REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
        decode_responses=True,
    )
    # Separate connection for pub/sub; no socket timeout there, it blocks on get_message
    pubsub_client = redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        password=REDIS_PASSWORD,
        db=REDIS_DB,
        socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
        decode_responses=True,
    )
    backend = RedisBackend(redis_client, pubsub_client)
    try:
        backend.ping()
        logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
    except StoreUnavailable:
        logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}")
        raise
    return backend
