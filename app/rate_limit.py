# Fixed-window, per-IP rate limiting on top of Redis counters.
# Keys look like rl:v1:ip:{ip}:{scope}; with Redis off or failing every request is allowed.
import logging
import os
from typing import Callable, Dict, Literal, Optional

import redis
from fastapi import Request, status

from .errors import RentoError
from .redis_client import get_redis

logger = logging.getLogger("rento.rate_limit")

Scope = Literal["login", "register", "write"]

# Per-window caps, overridable with RATE_LIMIT_<SCOPE>_PER_WINDOW
_DEFAULT_LIMITS: Dict[str, int] = {"login": 10, "register": 5, "write": 30}


class RateLimited(RentoError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    default_message = "Too many requests"


def _env_int(name: str, default: int) -> int:
    raw: Optional[str] = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _window_seconds() -> int:
    return _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)


def _limit_for_scope(scope: Scope) -> int:
    return _env_int(f"RATE_LIMIT_{scope.upper()}_PER_WINDOW", _DEFAULT_LIMITS[scope])


def _client_ip(request: Request) -> str:
    # Forwarded headers are not trusted; behind a proxy configure uvicorn's --proxy-headers instead
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    Build a FastAPI dependency that allows `limit` hits per IP per window for `scope`.

    The first hit in a window sets the key's TTL; once the counter passes the
    limit the request fails with 429 and a retry_after hint.
    """
    window = _window_seconds()
    limit = _limit_for_scope(scope)

    def _dependency(request: Request) -> None:
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            if current <= limit:
                return
            ttl = r.ttl(key)
        except redis.RedisError as exc:
            logger.warning("Rate limit fail-open (scope=%s, ip=%s): %s", scope, ip, exc)
            return

        retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
        logger.info("rate_limit.exceeded", extra={"scope": scope, "ip": ip, "limit": limit})
        raise RateLimited(
            "Too many requests, please retry later",
            details={"scope": scope, "limit": limit, "window_seconds": window, "retry_after": retry_after},
        )

    return _dependency
