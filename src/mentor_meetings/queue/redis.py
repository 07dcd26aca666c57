"""
Redis-клиент (asyncio).

Назначение:
- Единая точка подключения к Redis
- Используется дедупликацией вебхуков
"""

from __future__ import annotations

import redis.asyncio as redis

from mentor_meetings.common.config import get_settings

_settings = get_settings()
_client: redis.Redis | None = None


def redis_client() -> redis.Redis:
    """
    Singleton Redis client.
    """
    global _client
    if _client is None:
        _client = redis.Redis.from_url(_settings.redis_url, decode_responses=True)
    return _client


async def close_redis_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
