import json
from typing import Optional
from cachetools import TTLCache
from llm_gateway.core.config import settings
import redis.asyncio as redis

# Fallback in-memory cache (not multi-instance safe)
_memory_cache = TTLCache(maxsize=5000, ttl=settings.IDEMPOTENCY_TTL_SECONDS)
_redis: Optional[redis.Redis] = None

async def init_idempotency():
    global _redis
    if settings.REDIS_URL:
        _redis = redis.from_url(settings.REDIS_URL, decode_responses=True)

async def close_idempotency():
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None

async def _redis_get(key: str) -> Optional[str]:
    if _redis:
        return await _redis.get(key)
    return _memory_cache.get(key)

async def _redis_set(key: str, value: str):
    if _redis:
        await _redis.setex(key, settings.IDEMPOTENCY_TTL_SECONDS, value)
    else:
        _memory_cache[key] = value

def _key(api_key: str, idem_key: str) -> str:
    # scoped per caller so two callers cannot read each other's responses
    return f"idemp:{api_key}:{idem_key}"

async def get_cached_response(api_key: str, idem_key: str) -> Optional[dict]:
    raw = await _redis_get(_key(api_key, idem_key))
    if raw:
        try:
            return json.loads(raw)
        except ValueError:
            return None
    return None

async def set_cached_response(api_key: str, idem_key: str, value: dict):
    await _redis_set(_key(api_key, idem_key), json.dumps(value))
