"""
Per-IP brute-force protection for the merchant and admin login forms.
Counters live in Redis; without REDIS_URL the limiter is a no-op.
Each form has its own counter so a locked-out merchant IP can still reach the admin form.
"""
import logging

import redis
from starlette.requests import Request

from rpay.core.config import settings

logger = logging.getLogger("auth")

SCOPE_USER = "user"
SCOPE_ADMIN = "admin"

_client: redis.Redis | None = None


def _redis() -> redis.Redis | None:
    global _client
    if not settings.redis_url:
        return None
    if _client is None:
        _client = redis.Redis.from_url(settings.redis_url, decode_responses=True, socket_timeout=2)
    return _client


def _key(client_ip: str, scope: str) -> str:
    return f"rpay:login_attempts:{scope}:{client_ip}"


def get_client_ip(request: Request) -> str:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client else "127.0.0.1"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and peer in settings.trusted_proxy_ips_set:
        return forwarded.split(",")[0].strip()
    return peer


def check_login_rate_limit(client_ip: str, scope: str = SCOPE_USER) -> bool:
    """Count one attempt. Returns False once the window's budget is spent."""
    client = _redis()
    if client is None:
        return True
    key = _key(client_ip, scope)
    try:
        attempts = client.incr(key)
        if attempts == 1:
            client.expire(key, settings.login_rate_limit_window_seconds)
    except redis.RedisError as e:
        # Fail open
        logger.warning("login_rate_limit_redis_error", extra={"error": str(e)})
        return True
    if attempts > settings.login_rate_limit_attempts:
        logger.warning("login_rate_limited", extra={"ip": client_ip, "attempts": attempts, "source": scope})
        return False
    return True


def reset_login_attempts(client_ip: str, scope: str = SCOPE_USER) -> None:
    client = _redis()
    if client is None:
        return
    try:
        client.delete(_key(client_ip, scope))
    except redis.RedisError as e:
        logger.warning("login_rate_limit_redis_error", extra={"error": str(e)})
