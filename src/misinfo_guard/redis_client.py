from __future__ import annotations

import redis.asyncio as redis


async def create_redis(url: str | None) -> redis.Redis | None:
    if not url:
        return None
    client = redis.from_url(url, decode_responses=True)
    await client.ping()
    return client
