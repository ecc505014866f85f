from typing import Any, Dict, List

import httpx
import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from llm_gateway.errors import ProviderTimeoutError, ResponseParseError, VendorError, is_retryable_status
from llm_gateway.providers.base import VendorAdapter, VendorCall
from llm_gateway.schemas import ChatChoice, ChatMessage, ChatResponse, ChatUsage

AZURE_API_VERSION = "2024-02-15-preview"


def _status_error_message(e: openai.APIStatusError) -> str:
    # The SDK unwraps {"error": {...}} into e.body
    body = e.body
    if isinstance(body, dict):
        if isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return e.message


class OpenAICompatibleAdapter(VendorAdapter):
    """OpenAI, Azure OpenAI, Groq, Mistral, OpenRouter, Together, LM Studio
    and any vendor we do not recognise."""

    default_base_url = "https://api.openai.com/v1"

    def _build_client(self, timeout_ms: int | None = None) -> AsyncOpenAI:
        timeout = (timeout_ms or self.provider.request_timeout) / 1000
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=self.provider.connect_timeout / 1000),
            verify=not self.provider.skip_tls_verify,
            transport=self.transport,
        )
        common = dict(
            # local servers ignore the key but the SDK insists on one
            api_key=self.provider.api_key or "not-needed",
            organization=self.provider.organization_id or None,
            project=self.provider.project_id or None,
            timeout=timeout,
            max_retries=0,  # the dispatcher owns retries
            default_headers=self.provider.custom_headers or None,
            http_client=http_client,
        )
        if self.provider.vendor == "azure-openai":
            return AsyncAzureOpenAI(
                azure_endpoint=self.base_url,
                api_version=self.provider.api_version or AZURE_API_VERSION,
                **common,
            )
        return AsyncOpenAI(base_url=self.base_url, **common)

    def _to_openai_messages(self, call: VendorCall) -> List[Dict[str, str]]:
        # Pass through roles/content
        return [{"role": m.role, "content": m.content} for m in call.messages]

    async def _call(self, coro_factory):
        slug = self.provider.slug
        try:
            return await coro_factory()
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(f"{slug}: request timed out", provider=slug) from e
        except openai.APIConnectionError as e:
            raise VendorError(
                f"{slug}: connection failed: {e}", provider=slug, retryable=True, code="CONNECTION_ERROR"
            ) from e
        except openai.APIStatusError as e:
            raise VendorError(
                _status_error_message(e),
                provider=slug,
                status_code=e.status_code,
                retryable=is_retryable_status(e.status_code),
            ) from e
        except openai.APIResponseValidationError as e:
            raise ResponseParseError(f"{slug}: {e.message}", provider=slug) from e

    async def send(self, call: VendorCall) -> Any:
        async def create():
            async with self._build_client() as client:
                return await client.chat.completions.create(
                    model=call.model,
                    messages=self._to_openai_messages(call),
                    stream=False,
                    **call.params,
                )

        return await self._call(create)

    def translate(self, raw: Any, call: VendorCall) -> ChatResponse:
        if not raw.choices:
            raise ResponseParseError(f"{self.provider.slug}: response has no choices", provider=self.provider.slug)
        usage = ChatUsage()
        if raw.usage is not None:
            usage = ChatUsage(
                prompt_tokens=raw.usage.prompt_tokens or 0,
                completion_tokens=raw.usage.completion_tokens or 0,
                total_tokens=raw.usage.total_tokens or 0,
            )
        return ChatResponse(
            id=raw.id,
            created=raw.created or self.now(),
            model=raw.model or call.model,
            provider=self.provider.slug,
            choices=[
                ChatChoice(
                    index=choice.index,
                    message=ChatMessage(role="assistant", content=choice.message.content or ""),
                    finish_reason=choice.finish_reason,
                )
                for choice in raw.choices
            ],
            usage=usage,
        )

    async def fetch_models(self) -> Any:
        async def fetch():
            async with self._build_client(self.provider.connect_timeout) as client:
                page = await client.models.list()
                return page.data

        return await self._call(fetch)

    def translate_models(self, raw: Any) -> List[Dict[str, Any]]:
        return [{"id": m.id, "object": m.object} for m in raw]
