"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Async Supabase client for the catalog and account carts
- Upstash Redis client for guest carts and realtime streams
"""

from typing import Optional

from supabase._async.client import AsyncClient, create_client as acreate_client
from upstash_redis.asyncio import Redis as AsyncRedis

from storefront import config


# Singleton instances
_async_supabase_client: Optional[AsyncClient] = None
_redis_client: Optional[AsyncRedis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(
            config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY
        )

    return _async_supabase_client


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Used for:
    - Guest cart blobs (one namespace per guest session)
    - Realtime "cart changed" streams
    """
    global _redis_client

    if _redis_client is None:
        if not config.UPSTASH_REDIS_REST_URL or not config.UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(
            url=config.UPSTASH_REDIS_REST_URL, token=config.UPSTASH_REDIS_REST_TOKEN
        )

    return _redis_client


class RedisKeys:
    """Redis key prefixes for different data types."""

    GUEST = "guest:"  # guest:{session_id}:{key}
    CART_STREAM = "stream:realtime:cart:"  # stream:realtime:cart:{owner}

    @staticmethod
    def guest_key(session_id: str, key: str) -> str:
        return f"{RedisKeys.GUEST}{session_id}:{key}"

    @staticmethod
    def cart_stream_key(owner: str) -> str:
        return f"{RedisKeys.CART_STREAM}{owner}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    GUEST_CART = 86400  # 24 hours
