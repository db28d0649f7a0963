from __future__ import annotations

import json
import logging
from typing import Any

import redis

logger = logging.getLogger(__name__)


def _get_sync_redis(redis_url: str) -> redis.Redis:
    """
    Create a fresh sync Redis client per call so Celery workers
    don't hold onto stale connections.
    """
    return redis.from_url(
        str(redis_url),
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def cached_get(
    redis_url: str,
    key: str,
    set_value: Any | None = None,
    ttl: int | None = None,
) -> Any:
    """
    TTL cache backed by Redis.

    Usage:

        value = cached_get(url, "k")                  # read
        cached_get(url, "k", set_value=value, ttl=60) # write with TTL

    - On read: returns cached value (deserialized JSON) or None if missing/expired.
    - On write: stores value (serialized JSON) with optional TTL and returns it.

    Redis being unreachable or misconfigured degrades to a cache miss.
    """
    client = None
    try:
        client = _get_sync_redis(redis_url)
        if set_value is None:
            # Read path
            val = client.get(key)
            if val is not None:
                return json.loads(val)
            return None

        # Write path
        serialized = json.dumps(set_value)
        if ttl is not None:
            client.set(key, serialized, ex=ttl)
        else:
            client.set(key, serialized)
        return set_value

    except (redis.RedisError, ValueError) as e:
        logger.warning("Redis cache unavailable: %s", e)
        return None
    finally:
        if client is not None:
            try:
                client.close()
            except redis.RedisError:
                pass
