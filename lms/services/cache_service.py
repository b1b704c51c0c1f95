# lms/services/cache_service.py

import json
from typing import Any, Optional

import redis.asyncio as redis
from fastapi.encoders import jsonable_encoder
from loguru import logger

from lms.core.config import settings


ANALYTICS_PREFIX = "ANALYTICS:"


def _client():
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
    )


# Every helper is a no-op without REDIS_URL and degrades to a cache miss
# when Redis is unreachable.
async def get_cached(key: str) -> Optional[Any]:
    if not settings.REDIS_URL:
        return None

    client = None
    try:
        client = _client()
        raw = await client.get(ANALYTICS_PREFIX + key)
        return json.loads(raw) if raw else None
    except Exception as e:
        logger.warning(f"Analytics cache read failed for {key}: {e}")
        return None
    finally:
        if client:
            await client.aclose()


async def set_cached(key: str, value: Any, ttl: Optional[int] = None):
    if not settings.REDIS_URL:
        return

    client = None
    try:
        client = _client()
        await client.set(
            ANALYTICS_PREFIX + key,
            json.dumps(jsonable_encoder(value)),
            ex=ttl or settings.ANALYTICS_CACHE_TTL,
        )
    except Exception as e:
        logger.warning(f"Analytics cache write failed for {key}: {e}")
    finally:
        if client:
            await client.aclose()


async def invalidate_analytics() -> int:
    if not settings.REDIS_URL:
        return 0

    client = None
    count = 0
    try:
        client = _client()
        async for key in client.scan_iter(match=f"{ANALYTICS_PREFIX}*", count=200):
            await client.delete(key)
            count += 1
    except Exception as e:
        logger.warning(f"Analytics cache invalidation failed: {e}")
    finally:
        if client:
            await client.aclose()
    return count
