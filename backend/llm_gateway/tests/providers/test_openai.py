import httpx
import pytest

from llm_gateway.errors import ProviderTimeoutError, VendorError
from llm_gateway.providers import OpenAICompatibleAdapter, VendorCall, get_adapter
from llm_gateway.schemas import ChatMessage
from llm_gateway.tests.utils.provider import provider_config
from llm_gateway.tests.utils.vendor import openai_completion, vendor_error


def _call(provider, **params) -> VendorCall:
    return VendorCall(
        provider=provider,
        model="gpt-4o-mini",
        messages=[
            ChatMessage(role="system", content="Be brief."),
            ChatMessage(role="user", content="Hello"),
        ],
        params=params,
    )


def test_unknown_vendor_uses_openai_adapter() -> None:
    adapter = get_adapter(provider_config("together", api_key="k"))
    assert isinstance(adapter, OpenAICompatibleAdapter)


@pytest.mark.asyncio
async def test_messages_and_params_pass_through(vendor) -> None:
    provider = provider_config("openai", api_key="sk-test")
    vendor.queue(openai_completion("Hi there"))

    response = await get_adapter(provider, transport=vendor.transport).complete(
        _call(provider, temperature=0.5, max_tokens=10)
    )

    request = vendor.requests[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"
    body = vendor.body()
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hello"},
    ]
    assert body["temperature"] == 0.5
    assert body["max_tokens"] == 10

    assert response.provider == "openai"
    assert response.choices[0].message.content == "Hi there"
    assert response.choices[0].finish_reason == "stop"
    assert response.usage.total_tokens == 21


@pytest.mark.asyncio
async def test_custom_headers_are_sent(vendor) -> None:
    provider = provider_config("openrouter", api_key="k", custom_headers={"HTTP-Referer": "https://example.com"})
    vendor.queue(openai_completion())
    await get_adapter(provider, transport=vendor.transport).complete(_call(provider))
    assert vendor.requests[0].headers["http-referer"] == "https://example.com"


@pytest.mark.asyncio
async def test_vendor_error_message_is_verbatim(vendor) -> None:
    provider = provider_config("openai", api_key="sk-bad")
    vendor.queue(vendor_error(401, "Incorrect API key provided: sk-bad."))

    with pytest.raises(VendorError) as exc_info:
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))

    assert exc_info.value.message == "Incorrect API key provided: sk-bad."
    assert exc_info.value.status_code == 401
    assert exc_info.value.retryable is False


@pytest.mark.parametrize("status_code", [408, 429, 500, 503])
@pytest.mark.asyncio
async def test_transient_statuses_are_retryable(vendor, status_code: int) -> None:
    provider = provider_config("openai", api_key="sk-test")
    vendor.queue(vendor_error(status_code, "try later"))
    with pytest.raises(VendorError) as exc_info:
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_connection_failure_is_retryable(vendor) -> None:
    provider = provider_config("openai", api_key="sk-test")
    vendor.queue(httpx.ConnectError("connection refused"))
    with pytest.raises(VendorError) as exc_info:
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))
    assert exc_info.value.code == "CONNECTION_ERROR"
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_read_timeout_maps_to_timeout(vendor) -> None:
    provider = provider_config("openai", api_key="sk-test")
    vendor.queue(httpx.ReadTimeout("slow"))
    with pytest.raises(ProviderTimeoutError):
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))


@pytest.mark.asyncio
async def test_list_models(vendor) -> None:
    provider = provider_config("lmstudio")
    vendor.queue(
        httpx.Response(200, json={"object": "list", "data": [{"id": "qwen2.5-7b", "object": "model"}]})
    )
    models = await get_adapter(provider, transport=vendor.transport).list_models()
    assert vendor.requests[0].url.path == "/v1/models"
    assert models == [{"id": "qwen2.5-7b", "object": "model"}]


@pytest.mark.asyncio
async def test_probe_falls_back_to_tiny_completion(vendor) -> None:
    provider = provider_config("openai", api_key="sk-test")
    vendor.queue(vendor_error(404, "not here"), openai_completion("Hi"))

    message = await get_adapter(provider, transport=vendor.transport).probe()

    assert message == "Connection successful"
    assert vendor.calls == 2
    body = vendor.body()
    assert body["max_tokens"] == 5
    assert body["model"] == provider.default_model
