"""
Hybrid in-memory + Redis rate limiting utilities
Counts live in process memory and are periodically synced to Redis when one is configured
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .config import RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

# Redis connection, None when not configured or unreachable
redis_client: Optional[redis.Redis] = None
_redis_initialized = False

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds
last_cleanup_time = 0


def redis_configured() -> bool:
    return bool(os.getenv("REDIS_URL") or os.getenv("REDIS_HOST"))


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create the Redis client.
    Returns None when Redis is not configured or cannot be reached; the limiter
    then works from memory only (fail-open across processes).
    """
    global redis_client, _redis_initialized

    if _redis_initialized:
        return redis_client
    _redis_initialized = True

    if not redis_configured():
        logger.info("ℹ️ Redis not configured - rate limiting uses process memory only")
        return None

    redis_url = os.getenv("REDIS_URL")
    try:
        if redis_url:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
        else:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD", None),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
        client.ping()
        redis_client = client
        logger.info("✅ Redis connected for rate limiting")
    except redis.RedisError as e:
        logger.error(f"❌ Failed to connect to Redis: {e}")
        logger.warning("⚠️ Rate limiting falls back to process memory (fail-open mode)")
        redis_client = None

    return redis_client


def reset_rate_limits():
    """Forget all in-memory counters"""
    with cache_lock:
        memory_cache.clear()


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [
            k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

    last_cleanup_time = current_time


def _load_entry(key: str, window_seconds: int, client: Optional[redis.Redis], now: int) -> dict:
    if client is not None:
        try:
            redis_count = client.get(key)
            redis_ttl = client.ttl(key)
            if redis_count and redis_ttl > 0:
                return {
                    "count": int(redis_count),
                    "reset_time": now + redis_ttl,
                    "last_redis_sync": now,
                }
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
    return {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Check and count one hit against a fixed window

    Args:
        key: Counter key for this rate limit
        limit: Maximum number of hits allowed in the window
        window_seconds: Window length in seconds
        client: Redis client used to share counts between processes, optional

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(time.time())
    cleanup_expired_cache()

    with cache_lock:
        if key not in memory_cache:
            memory_cache[key] = _load_entry(key, window_seconds, client, current_time)

        cache_entry = memory_cache[key]

        if current_time >= cache_entry["reset_time"]:
            cache_entry["count"] = 0
            cache_entry["reset_time"] = current_time + window_seconds
            cache_entry["last_redis_sync"] = 0

        is_allowed = cache_entry["count"] < limit
        if is_allowed:
            cache_entry["count"] += 1

        if client is not None:
            time_since_sync = current_time - cache_entry.get("last_redis_sync", 0)
            if time_since_sync >= MEMORY_CACHE_SYNC_INTERVAL:
                try:
                    client.set(key, cache_entry["count"], ex=window_seconds)
                    cache_entry["last_redis_sync"] = current_time
                    logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
                except redis.RedisError as e:
                    logger.warning(f"⚠️ Failed to sync to Redis: {e}")

        ttl = cache_entry["reset_time"] - current_time
        return is_allowed, cache_entry["count"], max(0, ttl)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
):
    """
    FastAPI dependency for rate limiting

    Args:
        request: FastAPI request object
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        key_prefix: Prefix for the counter key
        use_ip: If True, use client IP in key (per-IP limit), otherwise global
    """
    if not RATE_LIMIT_ENABLED:
        return

    key = f"{key_prefix}:{client_ip(request)}" if use_ip else f"{key_prefix}:global"
    is_allowed, current_count, ttl = check_rate_limit(
        key, limit, window_seconds, get_redis_client()
    )

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count
    request.state.rate_limit_limit = limit
    request.state.rate_limit_reset = int(time.time()) + ttl


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        login_rate_limit = create_rate_limiter(limit=20, window_seconds=60, key_prefix="staff_login")

        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(login_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, use_ip)

    return rate_limiter
