import asyncio

import httpx
import pytest
from sqlmodel import Session

from llm_gateway.models import HealthStatus
from llm_gateway.services.health import HealthProber
from llm_gateway.tests.utils.provider import create_provider
from llm_gateway.tests.utils.vendor import openai_completion, vendor_error


@pytest.mark.asyncio
async def test_unknown_provider(prober: HealthProber, vendor) -> None:
    result = await prober.test("ghost")
    assert result.success is False
    assert result.message == "Provider not found"
    assert vendor.calls == 0


@pytest.mark.asyncio
async def test_missing_key_skips_network_and_store(db: Session, prober: HealthProber, vendor) -> None:
    provider = create_provider(db, vendor="anthropic")

    result = await prober.test(provider.slug)

    assert result.success is False
    assert result.message == "API key not configured"
    assert vendor.calls == 0
    db.refresh(provider)
    assert provider.last_health_check is None
    assert provider.health_status == HealthStatus.UNKNOWN


@pytest.mark.asyncio
async def test_successful_probe_records_health(db: Session, prober: HealthProber, vendor) -> None:
    provider = create_provider(db, vendor="ollama")
    provider.consecutive_failures = 3
    db.add(provider)
    db.commit()
    vendor.queue(httpx.Response(200, json={"models": [{"name": "llama3.2"}, {"name": "mistral"}]}))

    result = await prober.test(provider.id)

    assert result.success is True
    assert result.message == "Connected. 2 models available."
    assert result.latency_ms is not None
    db.refresh(provider)
    assert provider.health_status == HealthStatus.HEALTHY
    assert provider.consecutive_failures == 0
    assert provider.last_error is None
    assert provider.average_latency is not None
    assert provider.last_health_check is not None


@pytest.mark.asyncio
async def test_failed_probe_records_vendor_message(db: Session, prober: HealthProber, vendor) -> None:
    provider = create_provider(db, vendor="gemini", api_key="bad-key")
    vendor.queue(
        vendor_error(400, "API key not valid."),
        vendor_error(400, "API key not valid."),
    )

    result = await prober.test("gemini")

    assert result.success is False
    assert result.message == "API key not valid."
    db.refresh(provider)
    assert provider.health_status == HealthStatus.UNHEALTHY
    assert provider.consecutive_failures == 1
    assert provider.last_error == "API key not valid."


@pytest.mark.asyncio
async def test_probe_falls_back_to_completion(db: Session, prober: HealthProber, vendor) -> None:
    create_provider(db, vendor="openai", api_key="sk-test")
    vendor.queue(vendor_error(403, "models endpoint forbidden"), openai_completion("Hi"))

    result = await prober.test("openai")

    assert result.success is True
    assert vendor.calls == 2


@pytest.mark.asyncio
async def test_probe_bounded_by_connect_timeout(db: Session, prober: HealthProber, vendor) -> None:
    provider = create_provider(db, vendor="ollama")
    provider.connect_timeout = 50
    db.add(provider)
    db.commit()

    async def stall(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={"models": []})

    vendor.queue(stall)

    result = await prober.test("ollama")

    assert result.success is False
    assert "50 ms" in result.message
    db.refresh(provider)
    assert provider.health_status == HealthStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_malformed_models_list_is_recorded_as_failure(db: Session, prober: HealthProber, vendor) -> None:
    provider = create_provider(db, vendor="ollama")
    vendor.queue(httpx.Response(200, json={"models": [{"size": 2019393189}]}))

    result = await prober.test(provider.slug)

    assert result.success is False
    assert "unexpected models list shape" in result.message
    db.refresh(provider)
    assert provider.health_status == HealthStatus.UNHEALTHY
    assert provider.consecutive_failures == 1
    assert provider.last_health_check is not None
