import json
from typing import Any, Optional

import redis
import structlog

from ..config import settings

logger = structlog.get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
        )
    return _redis_client


def get_cache(key: str) -> Optional[Any]:
    """Return the cached JSON value for `key`, or None on a miss or when Redis is down."""
    if not settings.CACHE_ENABLED:
        return None
    try:
        value = get_redis().get(key)
        if value:
            return json.loads(value)
    except Exception as e:
        logger.warning("cache_get_failed", key=key, error=str(e))
    return None


def set_cache(key: str, value: Any, ttl: int | None = None) -> bool:
    if not settings.CACHE_ENABLED:
        return False
    try:
        get_redis().setex(key, ttl or settings.CACHE_TTL, json.dumps(value, ensure_ascii=False, default=str))
        return True
    except Exception as e:
        logger.warning("cache_set_failed", key=key, error=str(e))
        return False


def delete_cache_pattern(pattern: str) -> int:
    if not settings.CACHE_ENABLED:
        return 0
    try:
        client = get_redis()
        keys = list(client.scan_iter(match=pattern))
        if keys:
            return client.delete(*keys)
        return 0
    except Exception as e:
        logger.warning("cache_invalidate_failed", pattern=pattern, error=str(e))
        return 0
