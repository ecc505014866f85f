from aiolimiter import AsyncLimiter
from typing import Dict, Optional, Tuple
from llm_gateway.core.config import settings

# In-memory limiters (for multi-instance deployments, prefer Redis-based token buckets)
_limiters: Dict[str, AsyncLimiter] = {}
_provider_limiters: Dict[int, Tuple[int, AsyncLimiter]] = {}

def get_limiter(key: str) -> AsyncLimiter:
    # per-caller budget on the chat endpoint, RATE_LIMIT_PER_MINUTE over a 60s window
    rate = max(1, settings.RATE_LIMIT_PER_MINUTE)
    if key not in _limiters:
        _limiters[key] = AsyncLimiter(rate, time_period=60)
    return _limiters[key]

def get_provider_limiter(provider_id: int, rate_limit_rpm: Optional[int]) -> Optional[AsyncLimiter]:
    # one limiter per provider, replaced when its rpm is edited
    if not rate_limit_rpm:
        _provider_limiters.pop(provider_id, None)
        return None
    entry = _provider_limiters.get(provider_id)
    if entry is None or entry[0] != rate_limit_rpm:
        entry = (rate_limit_rpm, AsyncLimiter(rate_limit_rpm, time_period=60))
        _provider_limiters[provider_id] = entry
    return entry[1]
