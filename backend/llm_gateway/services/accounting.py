from typing import Optional

import structlog
from sqlalchemy.engine import Engine
from sqlmodel import Session

from llm_gateway import crud
from llm_gateway.errors import LLMError
from llm_gateway.models import ProviderConfig
from llm_gateway.observability import LLM_REQUESTS, LLM_TOKENS
from llm_gateway.schemas import ChatResponse
from llm_gateway.utils.usage_callback import send_usage

logger = structlog.get_logger()


class UsageAccountant:
    """Records the final outcome of each dispatch, exactly once.

    Counter updates are additive single-statement UPDATEs, so concurrent
    dispatches against one provider commute.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    async def record_success(
        self,
        provider: ProviderConfig,
        response: ChatResponse,
        *,
        model: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        # model counters are keyed on the requested model id
        model = model or response.model
        usage = response.usage
        with Session(self.engine) as session:
            matched = crud.record_dispatch_success(
                session=session,
                provider_id=provider.id,
                vendor_model_id=model,
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
        if not matched:
            logger.warning("usage_provider_gone", provider=provider.slug)
        LLM_REQUESTS.labels(provider.slug, "success").inc()
        LLM_TOKENS.labels(provider.slug, "prompt").inc(usage.prompt_tokens)
        LLM_TOKENS.labels(provider.slug, "completion").inc(usage.completion_tokens)
        await send_usage({
            "request_id": request_id,
            "provider": provider.slug,
            "model": model,
            "success": True,
            "usage": usage.model_dump(),
            "latency_ms": response.latency_ms,
        })

    async def record_failure(self, provider: ProviderConfig, error: Exception, *, model: Optional[str] = None, request_id: Optional[str] = None) -> None:
        message = error.message if isinstance(error, LLMError) else str(error)
        code = error.code if isinstance(error, LLMError) else type(error).__name__
        with Session(self.engine) as session:
            matched = crud.record_dispatch_failure(
                session=session,
                provider_id=provider.id,
                error_message=message,
            )
        if not matched:
            logger.warning("usage_provider_gone", provider=provider.slug)
        LLM_REQUESTS.labels(provider.slug, code).inc()
        await send_usage({
            "request_id": request_id,
            "provider": provider.slug,
            "model": model,
            "success": False,
            "error": code,
        })
