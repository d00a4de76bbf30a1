"""
Shared async Redis client.

One client (and connection pool) serves every request and background task.
It is created on first use and closed when the application shuts down.
"""
from typing import Optional

import redis.asyncio as redis

from src.tracking.config import REDIS_HOST, REDIS_PORT

_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            decode_responses=True,
        )
    return _client


async def close_redis_client() -> None:
    """Close the shared client, if one was created."""
    global _client
    if _client is not None:
        client, _client = _client, None
        await client.aclose()
