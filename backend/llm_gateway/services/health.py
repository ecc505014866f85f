import asyncio
import time
from typing import Optional, Union

import httpx
import structlog
from sqlalchemy.engine import Engine
from sqlmodel import Session

from llm_gateway import crud
from llm_gateway.core import db
from llm_gateway.errors import LLMError
from llm_gateway.models import ProviderConfig
from llm_gateway.observability import LLM_PROBES
from llm_gateway.providers import get_adapter
from llm_gateway.schemas import ProbeResult

logger = structlog.get_logger()


class HealthProber:
    """On-demand connectivity check for one provider.

    A probe never raises for vendor trouble; the outcome is returned as a
    ``ProbeResult`` and written to the provider's health fields.
    """

    def __init__(self, engine: Optional[Engine] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.engine = engine or db.engine
        self.transport = transport

    async def test(self, ref: Union[int, str]) -> ProbeResult:
        with Session(self.engine) as session:
            row = crud.get_provider(session=session, ref=ref)
            provider = ProviderConfig.model_validate(row.model_dump()) if row else None
        if provider is None:
            return ProbeResult(success=False, message="Provider not found")
        if provider.requires_credential and not provider.api_key:
            # nothing to learn from the network, and nothing to record
            return ProbeResult(success=False, message="API key not configured")

        adapter = get_adapter(provider, transport=self.transport)
        started = time.perf_counter()
        try:
            async with asyncio.timeout(provider.connect_timeout / 1000):
                message = await adapter.probe()
            success = True
        except LLMError as e:
            success, message = False, e.message
        except TimeoutError:
            success, message = False, f"No response within {provider.connect_timeout} ms"
        latency_ms = int((time.perf_counter() - started) * 1000)

        with Session(self.engine) as session:
            crud.record_health_check(
                session=session,
                provider_id=provider.id,
                success=success,
                message=message,
                latency_ms=latency_ms,
            )
        LLM_PROBES.labels(provider.slug, "success" if success else "failure").inc()
        logger.info("provider_probed", provider=provider.slug, success=success, latency_ms=latency_ms, message=message)
        return ProbeResult(success=success, message=message, latency_ms=latency_ms)
