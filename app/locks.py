# Per-listing booking lock backed by Redis SET NX PX.
# Fails open: without Redis the database overlap guard remains the source of truth.
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

import redis

from .redis_client import get_redis

logger = logging.getLogger("rento.locks")

# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


def listing_lock_key(listing_id: int) -> str:
    return f"lock:booking:apartment:{listing_id}"


@contextmanager
def redis_try_lock(key: str, ttl_ms: int = 5000) -> Iterator[bool]:
    """
    Try to take `key` for `ttl_ms` milliseconds.

    Yields True when the lock is held (or Redis is off/unreachable) and False
    when another process holds it:

        with redis_try_lock(listing_lock_key(apartment_id)) as locked:
            if not locked:
                raise Busy()
            ...
    """
    r = get_redis()
    if r is None:
        yield True
        return

    token = uuid4().hex
    try:
        acquired = bool(r.set(key, token, nx=True, px=ttl_ms))
    except redis.RedisError as exc:
        logger.warning("lock acquire failed, proceeding unlocked (key=%s): %s", key, exc)
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except redis.RedisError as exc:
                # The TTL releases it eventually
                logger.debug("lock release failed (key=%s): %s", key, exc)
