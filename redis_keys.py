REDIS_META_KEY = "room:meta:{slug}" # room id - room record hash, its TTL is authoritative
REDIS_CONNECTED_KEY = "room:connected:{slug}" # room id - ordered list of admitted tokens (max 2)
REDIS_MESSAGES_KEY = "room:messages:{slug}" # room id - list of JSON messages, append only
REDIS_HISTORY_KEY = "room:history:{slug}" # room id - housekeeping marker, only carries the synced TTL
REDIS_ROOM_CHANNEL = "room:channel:{slug}" # room id - pub/sub channel name


def room_keys(room_id: str) -> dict:
    """All keys owned by a room, keyed by role."""
    return {
        "meta": REDIS_META_KEY.format(slug=room_id),
        "connected": REDIS_CONNECTED_KEY.format(slug=room_id),
        "messages": REDIS_MESSAGES_KEY.format(slug=room_id),
        "history": REDIS_HISTORY_KEY.format(slug=room_id),
    }

# **Example `room:meta:{id}` hash fields**
# - `created_at` = ISO timestamp (UTC)
#
# Expiry is carried by the key TTL only, there is no expires_at field or expired flag.
# `connected`, `messages` and `history` are re-expired to the meta key's PTTL whenever
# they are written or the room TTL is read.
