import httpx
from typing import Dict, Any
from llm_gateway.core.config import settings
import structlog

logger = structlog.get_logger()

async def send_usage(payload: Dict[str, Any]):
    """
    Optionally POST a usage event (provider, model, tokens, outcome) to an
    external service, e.g. for billing or quota tracking.
    Configure USAGE_CALLBACK_URL and USAGE_CALLBACK_AUTH.
    Failures are logged and ignored; accounting in the store is already done.
    """
    if not settings.USAGE_CALLBACK_URL:
        return
    headers = {"Content-Type": "application/json"}
    if settings.USAGE_CALLBACK_AUTH:
        headers["Authorization"] = settings.USAGE_CALLBACK_AUTH
    try:
        async with httpx.AsyncClient(timeout=settings.USAGE_CALLBACK_TIMEOUT_SECONDS) as client:
            await client.post(settings.USAGE_CALLBACK_URL, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("usage_callback_failed", err=str(e))
