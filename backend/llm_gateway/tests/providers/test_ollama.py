import httpx
import pytest

from llm_gateway.errors import ResponseParseError, VendorError
from llm_gateway.providers import OllamaAdapter, VendorCall, get_adapter
from llm_gateway.schemas import ChatMessage
from llm_gateway.tests.utils.provider import provider_config
from llm_gateway.tests.utils.vendor import ollama_completion


def _call(provider, **params) -> VendorCall:
    return VendorCall(
        provider=provider,
        model="llama3.2",
        messages=[ChatMessage(role="user", content="Hi")],
        params=params,
    )


@pytest.mark.asyncio
async def test_chat_request_nests_options(vendor) -> None:
    provider = provider_config("ollama")
    adapter = get_adapter(provider, transport=vendor.transport)
    assert isinstance(adapter, OllamaAdapter)
    vendor.queue(ollama_completion("Hello from llama"))

    response = await adapter.complete(_call(provider, temperature=0.7, num_predict=32, repeat_penalty=1.1))

    request = vendor.requests[0]
    assert request.url.path == "/api/chat"
    assert "authorization" not in request.headers
    body = vendor.body()
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.7, "num_predict": 32, "repeat_penalty": 1.1}
    assert body["messages"] == [{"role": "user", "content": "Hi"}]

    assert response.choices[0].message.content == "Hello from llama"
    assert response.choices[0].finish_reason == "stop"
    assert response.usage.total_tokens == 12


@pytest.mark.asyncio
async def test_error_string_is_verbatim(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(httpx.Response(404, json={"error": "model 'llama9' not found, try pulling it first"}))
    with pytest.raises(VendorError) as exc_info:
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))
    assert exc_info.value.message == "model 'llama9' not found, try pulling it first"
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_non_json_body_is_a_parse_error(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(httpx.Response(200, text="<html>proxy error</html>"))
    with pytest.raises(ResponseParseError):
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))


@pytest.mark.asyncio
async def test_unexpected_shape_is_a_parse_error(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(httpx.Response(200, json={"done": True}))
    with pytest.raises(ResponseParseError):
        await get_adapter(provider, transport=vendor.transport).complete(_call(provider))


@pytest.mark.asyncio
async def test_malformed_models_list_is_a_parse_error(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(httpx.Response(200, json={"models": [{"size": 1}]}))
    with pytest.raises(ResponseParseError):
        await get_adapter(provider, transport=vendor.transport).list_models()


@pytest.mark.asyncio
async def test_probe_counts_models(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(
        httpx.Response(
            200,
            json={"models": [{"name": "llama3.2:latest", "size": 2019393189, "modified_at": "2024-10-01T10:00:00Z"}]},
        )
    )
    message = await get_adapter(provider, transport=vendor.transport).probe()
    assert vendor.requests[0].url.path == "/api/tags"
    assert message == "Connected. 1 model available."


@pytest.mark.asyncio
async def test_pull_model(vendor) -> None:
    provider = provider_config("ollama")
    vendor.queue(httpx.Response(200, json={"status": "success"}))
    result = await OllamaAdapter(provider, transport=vendor.transport).pull_model("llama3.2")
    assert result == {"status": "success"}
    assert vendor.requests[0].url.path == "/api/pull"
    assert vendor.body() == {"model": "llama3.2", "stream": False}
