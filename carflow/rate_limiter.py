"""
Hybrid in-memory + Redis rate limiting utilities
Runs memory-only when no Redis is configured (single process / development)
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
_redis_disabled = False

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create the Redis client from REDIS_URL.
    Returns None when Redis is not configured or unreachable.
    """
    global redis_client, _redis_disabled

    if redis_client is not None or _redis_disabled:
        return redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        logger.info("ℹ️ REDIS_URL not set - rate limiting uses process memory only")
        _redis_disabled = True
        return None

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
        redis_client = client
        logger.info("✅ Redis connected for rate limiting")
    except redis.RedisError as e:
        logger.warning(f"⚠️ Redis unavailable, rate limiting falls back to memory: {e}")
        _redis_disabled = True

    return redis_client


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)]
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
                return {"count": int(redis_count), "reset_time": now + redis_ttl, "last_redis_sync": now}
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
    return {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Check if rate limit is exceeded.

    Counts live in memory and are pushed to Redis at most every
    MEMORY_CACHE_SYNC_INTERVAL seconds so several workers converge.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    current_time = int(time.time())
    cleanup_expired_cache()

    with cache_lock:
        if key not in memory_cache:
            memory_cache[key] = _load_entry(key, window_seconds, client, current_time)

        entry = memory_cache[key]

        if current_time >= entry["reset_time"]:
            entry["count"] = 0
            entry["reset_time"] = current_time + window_seconds
            entry["last_redis_sync"] = 0

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if client is not None and current_time - entry.get("last_redis_sync", 0) >= MEMORY_CACHE_SYNC_INTERVAL:
            try:
                client.set(key, entry["count"], ex=window_seconds)
                entry["last_redis_sync"] = current_time
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync to Redis: {e}")

        ttl = entry["reset_time"] - current_time
        return is_allowed, entry["count"], max(0, ttl)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a per-IP rate limiter dependency

    Example usage:
        login_limit = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")

        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(login_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        key = f"{key_prefix}:{get_client_ip(request)}"
        is_allowed, current_count, ttl = check_rate_limit(
            key, limit, window_seconds, get_redis_client()
        )
        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
            raise HTTPException(
                status_code=429,
                detail=f"Too many attempts. Try again in {ttl} seconds.",
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
