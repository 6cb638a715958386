"""Redis async client for the ``redis`` scoring lock backend.

Only lock keys live here: ``scoring:lock:{user_id}``, one per user while a
publish event or recompute runs (see ``core.locks.RedisUserLocks``). Scores
and the ledger stay in the database.
"""

import redis.asyncio as redis

from postscore.config import settings

redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client singleton (lazy init)."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection if open."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
