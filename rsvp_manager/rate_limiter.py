"""
Hybrid in-memory + Redis rate limiting utilities
Counts in process memory and syncs to Redis periodically when REDIS_URL is set
"""

import logging
import time
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import HTTPException, Request

from .config import REDIS_URL

logger = logging.getLogger(__name__)

# Redis connection (None when running memory-only)
redis_client: Optional[redis.Redis] = None
_redis_unavailable = False

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds
last_cleanup_time = 0

# (limit, window_seconds)
RATE_LIMIT_PRESETS = {
    "api": (100, 60),
    "auth": (10, 60),
    "sensitive": (5, 60),
    "bulk": (5, 60),
    "webhook": (200, 60),
    "rsvp": (30, 60),
}


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create Redis client.
    Returns None when REDIS_URL is not configured or the server is unreachable.
    """
    global redis_client, _redis_unavailable

    if redis_client is not None or _redis_unavailable or not REDIS_URL:
        return redis_client

    logger.info("🔄 Initializing Redis connection for rate limiting...")
    try:
        client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=15,
            socket_timeout=30,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )
        client.ping()
        redis_client = client
        logger.info("✅ Redis connected successfully via URL")
    except Exception as e:
        _redis_unavailable = True
        logger.error(f"❌ Failed to connect to Redis: {str(e)}")
        logger.warning("⚠️ Rate limiting will use process memory only")

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


def reset_rate_limits():
    """Drop all in-memory counters"""
    with cache_lock:
        memory_cache.clear()


def _load_entry(key: str, window_seconds: int, now: int, client: Optional[redis.Redis]) -> dict:
    """Seed a counter from Redis when another process already started the window"""
    entry = {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}
    if client is None:
        return entry
    try:
        shared_count = client.get(key)
        shared_ttl = client.ttl(key)
    except Exception as e:
        logger.warning(f"⚠️ Could not read {key} from Redis: {e}")
        return entry
    if shared_count and shared_ttl > 0:
        entry.update(count=int(shared_count), reset_time=now + shared_ttl)
    return entry


def _push_entry(key: str, entry: dict, window_seconds: int, now: int, client: Optional[redis.Redis]) -> None:
    if client is None or now - entry["last_redis_sync"] < MEMORY_CACHE_SYNC_INTERVAL:
        return
    try:
        client.set(key, entry["count"], ex=window_seconds)
        entry["last_redis_sync"] = now
    except Exception as e:
        logger.warning(f"⚠️ Could not push {key} to Redis: {e}")


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """
    Count one request against ``key``.

    Returns (allowed, count in the current window, seconds until the window resets).
    Rejected requests do not increase the count.
    """
    now = int(time.time())
    cleanup_expired_cache()

    with cache_lock:
        entry = memory_cache.get(key)
        if entry is None:
            entry = memory_cache[key] = _load_entry(key, window_seconds, now, client)
        elif now >= entry["reset_time"]:
            entry.update(count=0, reset_time=now + window_seconds, last_redis_sync=0)

        allowed = entry["count"] < limit
        if allowed:
            entry["count"] += 1

        _push_entry(key, entry, window_seconds, now, client)
        return allowed, entry["count"], max(0, entry["reset_time"] - now)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    key_func: Optional[Callable[[Request], str]] = None,
):
    """
    FastAPI dependency for rate limiting

    Args:
        request: FastAPI request object
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        key_prefix: Prefix for the counter key
        key_func: Derives the bucket from the request (default: client IP)
    """
    identifier = key_func(request) if key_func else get_client_ip(request)
    key = f"{key_prefix}:{identifier}"

    is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())

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


def create_rate_limiter(
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    key_func: Optional[Callable[[Request], str]] = None,
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        rsvp_limit = create_rate_limiter(30, 60, "rsvp", key_func=lambda r: r.path_params["slug"])

        @router.post("/{slug}")
        async def submit(slug: str, _: None = Depends(rsvp_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, key_func)

    return rate_limiter


def preset_rate_limiter(preset: str, key_func: Optional[Callable[[Request], str]] = None):
    limit, window_seconds = RATE_LIMIT_PRESETS[preset]
    return create_rate_limiter(limit, window_seconds, key_prefix=preset, key_func=key_func)
