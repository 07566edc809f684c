# Optional shared Redis connection used by the booking lock and the rate limiter.
# Disabled unless REDIS_ENABLED is truthy; every caller must cope with get_redis() returning None.
import logging
import os
from typing import Optional

import redis

_logger = logging.getLogger("rento.redis")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


def truthy(val: Optional[str]) -> bool:
    return val is not None and val.strip().lower() in _TRUTHY


def is_redis_enabled() -> bool:
    return truthy(os.getenv("REDIS_ENABLED", "false"))


# Process-wide client; _attempted stays True after a failed connect so we do not retry per request
_client: Optional[redis.Redis] = None
_attempted = False


def get_redis() -> Optional[redis.Redis]:
    """
    Return a connected client, or None when Redis is disabled or unreachable.

    The first call connects and pings; a failure is logged once and the process
    then runs without Redis.
    """
    global _client, _attempted
    if not is_redis_enabled():
        return None
    if _client is not None or _attempted:
        return _client

    _attempted = True
    url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    try:
        client = redis.Redis.from_url(
            url,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
            retry_on_timeout=False,
        )
        client.ping()
    except redis.RedisError as exc:
        _logger.warning("Redis unavailable, continuing without it: %s", exc)
        return None

    _logger.info("Connected to Redis at %s", url)
    _client = client
    return _client


def reset_redis() -> None:
    """Forget the cached client so the next get_redis() reconnects (used by tests)."""
    global _client, _attempted
    _client = None
    _attempted = False
