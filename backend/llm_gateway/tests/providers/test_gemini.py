import httpx
import pytest

from llm_gateway.errors import VendorError
from llm_gateway.providers import GeminiAdapter, VendorCall, get_adapter
from llm_gateway.providers.gemini_provider import to_gemini_contents
from llm_gateway.schemas import ChatMessage
from llm_gateway.tests.utils.provider import provider_config
from llm_gateway.tests.utils.vendor import gemini_completion, vendor_error

CONVERSATION = [
    ChatMessage(role="system", content="You are terse."),
    ChatMessage(role="user", content="Hi"),
    ChatMessage(role="user", content="Anyone there?"),
    ChatMessage(role="assistant", content="Yes."),
    ChatMessage(role="system", content="Answer in English."),
    ChatMessage(role="user", content="Good"),
]


def test_roles_are_mapped_and_merged() -> None:
    payload = to_gemini_contents(CONVERSATION)
    assert payload["contents"] == [
        {"role": "user", "parts": [{"text": "Hi"}, {"text": "Anyone there?"}]},
        {"role": "model", "parts": [{"text": "Yes."}]},
        {"role": "user", "parts": [{"text": "Good"}]},
    ]
    assert payload["systemInstruction"] == {"parts": [{"text": "You are terse.\n\nAnswer in English."}]}


def test_no_system_instruction_without_system_messages() -> None:
    payload = to_gemini_contents([ChatMessage(role="user", content="Hi")])
    assert "systemInstruction" not in payload


@pytest.mark.asyncio
async def test_generate_content_request(vendor) -> None:
    provider = provider_config("gemini", api_key="g-key")
    adapter = get_adapter(provider, transport=vendor.transport)
    assert isinstance(adapter, GeminiAdapter)
    vendor.queue(gemini_completion("Hello!"))

    response = await adapter.complete(
        VendorCall(
            provider=provider,
            model="gemini-1.5-flash",
            messages=CONVERSATION,
            params={"temperature": 0.3, "maxOutputTokens": 64},
        )
    )

    request = vendor.requests[0]
    assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert request.headers["x-goog-api-key"] == "g-key"
    body = vendor.body()
    assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 64}
    assert len(body["safetySettings"]) == 4
    assert {s["threshold"] for s in body["safetySettings"]} == {"BLOCK_NONE"}

    assert response.choices[0].message.content == "Hello!"
    assert response.choices[0].finish_reason == "stop"
    assert (response.usage.prompt_tokens, response.usage.completion_tokens, response.usage.total_tokens) == (4, 6, 10)


@pytest.mark.asyncio
async def test_blocked_prompt_is_a_vendor_error(vendor) -> None:
    provider = provider_config("gemini", api_key="g-key")
    vendor.queue(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
    with pytest.raises(VendorError, match="SAFETY"):
        await get_adapter(provider, transport=vendor.transport).complete(
            VendorCall(provider=provider, model="gemini-1.5-flash", messages=CONVERSATION)
        )


@pytest.mark.asyncio
async def test_error_body_is_verbatim(vendor) -> None:
    provider = provider_config("gemini", api_key="g-key")
    vendor.queue(vendor_error(400, "API key not valid. Please pass a valid API key."))
    with pytest.raises(VendorError) as exc_info:
        await get_adapter(provider, transport=vendor.transport).complete(
            VendorCall(provider=provider, model="gemini-1.5-flash", messages=CONVERSATION)
        )
    assert exc_info.value.message == "API key not valid. Please pass a valid API key."
    assert exc_info.value.retryable is False
