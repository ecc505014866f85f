import asyncio
import time
from typing import Dict, Optional, Tuple, Union

import httpx
import structlog
from sqlalchemy.engine import Engine
from sqlmodel import Session
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from llm_gateway import crud
from llm_gateway.core import db
from llm_gateway.errors import (
    CredentialMissingError,
    LLMError,
    NoModelConfiguredError,
    NoProviderConfiguredError,
    ProviderDisabledError,
    ProviderNotFoundError,
    ProviderTimeoutError,
)
from llm_gateway.models import LLMModelBase, LLMProvider, ProviderConfig
from llm_gateway.observability import LLM_LATENCY, LLM_REQUESTS, LLM_RETRIES
from llm_gateway.providers import VendorAdapter, VendorCall, get_adapter
from llm_gateway.schemas import ChatRequest, ChatResponse
from llm_gateway.services.accounting import UsageAccountant
from llm_gateway.services.params import merge_parameters, resolve_parameters
from llm_gateway.utils.rate_limit import get_provider_limiter

logger = structlog.get_logger()


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, LLMError) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    call: VendorCall = retry_state.args[1]
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    LLM_RETRIES.labels(call.provider.slug).inc()
    logger.warning(
        "llm_attempt_failed",
        provider=call.provider.slug,
        model=call.model,
        attempt=retry_state.attempt_number,
        next_wait_s=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc),
    )


class Dispatcher:
    """Resolves provider, model and parameters for a chat request, then runs
    the vendor call inside the provider's retry and timeout envelope.

    Store reads happen up front in a short session; everything after that
    works on detached snapshots. The accountant is told the final outcome
    exactly once per dispatch that reached an enabled provider.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        accountant: Optional[UsageAccountant] = None,
        sleep=asyncio.sleep,
    ):
        self.engine = engine or db.engine
        self.transport = transport
        self.accountant = accountant or UsageAccountant(self.engine)
        self.sleep = sleep
        self._semaphores: Dict[int, Tuple[int, asyncio.Semaphore]] = {}

    async def chat(self, request: ChatRequest, *, request_id: Optional[str] = None) -> ChatResponse:
        started = time.perf_counter()
        provider, model_id, model_defaults = self._resolve(request)
        log = logger.bind(provider=provider.slug, model=model_id, request_id=request_id)

        try:
            call = self._prepare(provider, model_id, model_defaults, request)
            response = await self._execute(call)
        except asyncio.CancelledError:
            # caller went away; not a provider failure
            log.info("llm_dispatch_cancelled")
            LLM_REQUESTS.labels(provider.slug, "cancelled").inc()
            raise
        except LLMError as e:
            log.warning("llm_dispatch_failed", code=e.code, status_code=e.status_code, error=e.message)
            await self.accountant.record_failure(provider, e, model=model_id, request_id=request_id)
            raise

        elapsed = time.perf_counter() - started
        response.latency_ms = int(elapsed * 1000)
        LLM_LATENCY.labels(provider.slug).observe(elapsed)
        log.info("llm_dispatch_succeeded", latency_ms=response.latency_ms, total_tokens=response.usage.total_tokens)
        await self.accountant.record_success(provider, response, model=model_id, request_id=request_id)
        return response

    # Resolution

    def _resolve(self, request: ChatRequest) -> Tuple[ProviderConfig, Optional[str], Optional[LLMModelBase]]:
        with Session(self.engine) as session:
            row = self._resolve_provider(session, request.provider)
            provider = ProviderConfig.model_validate(row.model_dump())
            if request.model:
                model_row = crud.get_model_by_vendor_id(
                    session=session, provider_id=row.id, vendor_model_id=request.model
                )
                model_id: Optional[str] = request.model
            else:
                model_row = crud.get_default_model(session=session, provider_id=row.id)
                model_id = model_row.model_id if model_row else provider.default_model
            model_defaults = LLMModelBase.model_validate(model_row.model_dump()) if model_row else None
        return provider, model_id, model_defaults

    @staticmethod
    def _resolve_provider(session: Session, selector: Union[int, str, None]) -> LLMProvider:
        if selector is not None and selector != "":
            row = crud.get_provider(session=session, ref=selector)
            if row is None:
                raise ProviderNotFoundError(f"Provider '{selector}' not found", provider=str(selector))
            if not row.is_enabled:
                raise ProviderDisabledError(f"Provider '{row.slug}' is not enabled", provider=row.slug)
            return row

        row = crud.get_default_provider(session=session)
        if row is not None:
            if not row.is_enabled:
                raise ProviderDisabledError(f"Default provider '{row.slug}' is not enabled", provider=row.slug)
            return row

        row = crud.get_fallback_provider(session=session)
        if row is None:
            raise NoProviderConfiguredError("No enabled LLM provider is configured")
        return row

    def _prepare(
        self,
        provider: ProviderConfig,
        model_id: Optional[str],
        model_defaults: Optional[LLMModelBase],
        request: ChatRequest,
    ) -> VendorCall:
        if not model_id:
            raise NoModelConfiguredError(
                f"No model requested and provider '{provider.slug}' has no default model",
                provider=provider.slug,
            )
        if provider.requires_credential and not provider.api_key:
            raise CredentialMissingError(
                f"API key not configured for provider '{provider.slug}'",
                provider=provider.slug,
            )
        resolved = resolve_parameters(
            provider.vendor_kind, model_id, merge_parameters(request, provider, model_defaults)
        )
        if resolved.dropped:
            logger.debug(
                "llm_params_dropped",
                provider=provider.slug,
                model=model_id,
                model_class=resolved.model_class.value,
                dropped=list(resolved.dropped),
            )
        return VendorCall(provider=provider, model=model_id, messages=list(request.messages), params=resolved.wire)

    # Execution

    async def _execute(self, call: VendorCall) -> ChatResponse:
        provider = call.provider
        adapter = get_adapter(provider, transport=self.transport)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, provider.max_retries)),
            wait=wait_exponential(
                multiplier=provider.retry_delay / 1000,
                exp_base=provider.retry_backoff_multiplier,
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            sleep=self.sleep,
            reraise=True,
        )
        return await retrying(self._attempt, adapter, call)

    async def _attempt(self, adapter: VendorAdapter, call: VendorCall) -> ChatResponse:
        provider = call.provider
        limiter = get_provider_limiter(provider.id, provider.rate_limit_rpm)
        async with self._semaphore(provider):
            if limiter is not None:
                await limiter.acquire()
            try:
                async with asyncio.timeout(provider.request_timeout / 1000):
                    return await adapter.complete(call)
            except TimeoutError as e:
                raise ProviderTimeoutError(
                    f"{provider.slug}: no response within {provider.request_timeout} ms",
                    provider=provider.slug,
                ) from e

    def _semaphore(self, provider: ProviderConfig) -> asyncio.Semaphore:
        # one gate per provider, rebuilt when its limit is edited
        limit = max(1, provider.concurrency_limit)
        entry = self._semaphores.get(provider.id)
        if entry is None or entry[0] != limit:
            entry = (limit, asyncio.Semaphore(limit))
            self._semaphores[provider.id] = entry
        return entry[1]
