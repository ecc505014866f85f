import json
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import httpx
import structlog

from llm_gateway.errors import (
    LLMError,
    ProviderTimeoutError,
    ResponseParseError,
    VendorError,
    is_retryable_status,
)
from llm_gateway.models import ProviderConfig
from llm_gateway.schemas import ChatMessage, ChatResponse
from llm_gateway.services.params import GenerationParams, resolve_parameters

logger = structlog.get_logger()

PROBE_PROMPT = "Hi"
PROBE_MAX_TOKENS = 5


@dataclass
class VendorCall:
    """A fully resolved call: provider snapshot, model id, messages and wire params"""
    provider: ProviderConfig
    model: str
    messages: List[ChatMessage]
    params: Dict[str, Any] = field(default_factory=dict)


def extract_error_message(response: httpx.Response) -> str:
    """Vendor error text, verbatim when the body carries one"""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


def new_completion_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


class VendorAdapter:
    """One vendor wire format.

    ``send`` performs the HTTP exchange and returns the vendor's raw body;
    ``translate`` maps that body onto the uniform ``ChatResponse``. Both
    raise ``LLMError`` subclasses only.
    """

    default_base_url: Optional[str] = None

    def __init__(self, provider: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.provider = provider
        self.transport = transport

    @property
    def base_url(self) -> str:
        return (self.provider.base_url or self.default_base_url or "").rstrip("/")

    def auth_headers(self) -> Dict[str, str]:
        return {}

    def http_client(self, timeout_ms: Optional[int] = None) -> httpx.AsyncClient:
        read_timeout = (timeout_ms or self.provider.request_timeout) / 1000
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(read_timeout, connect=self.provider.connect_timeout / 1000),
            verify=not self.provider.skip_tls_verify,
            headers={**(self.provider.custom_headers or {}), **self.auth_headers()},
            transport=self.transport,
        )

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout_ms: Optional[int] = None,
    ) -> Any:
        slug = self.provider.slug
        try:
            async with self.http_client(timeout_ms) as client:
                response = await client.request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{slug}: request timed out ({type(e).__name__})", provider=slug) from e
        except httpx.TransportError as e:
            raise VendorError(
                f"{slug}: connection failed: {e}",
                provider=slug,
                retryable=True,
                code="CONNECTION_ERROR",
            ) from e
        if response.status_code >= 400:
            raise VendorError(
                extract_error_message(response),
                provider=slug,
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
            )
        try:
            return response.json()
        except (ValueError, json.JSONDecodeError) as e:
            raise ResponseParseError(f"{slug}: response is not JSON", provider=slug) from e

    # Adapter contract

    async def send(self, call: VendorCall) -> Any:
        raise NotImplementedError

    def translate(self, raw: Any, call: VendorCall) -> ChatResponse:
        raise NotImplementedError

    async def complete(self, call: VendorCall) -> ChatResponse:
        raw = await self.send(call)
        with self._parsing("response"):
            return self.translate(raw, call)

    async def fetch_models(self) -> Any:
        raise NotImplementedError

    def translate_models(self, raw: Any) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def list_models(self) -> List[Dict[str, Any]]:
        raw = await self.fetch_models()
        with self._parsing("models list"):
            return self.translate_models(raw)

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        try:
            yield
        except LLMError:
            raise
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise ResponseParseError(
                f"{self.provider.slug}: unexpected {what} shape: {e}",
                provider=self.provider.slug,
            ) from e

    async def probe(self) -> str:
        """Cheapest connectivity check: list models, else a tiny completion"""
        try:
            await self.list_models()
        except (LLMError, NotImplementedError) as e:
            logger.info("probe_list_models_failed", provider=self.provider.slug, error=str(e))
            await self.complete(self.probe_call())
        return "Connection successful"

    def probe_call(self) -> VendorCall:
        model = self.provider.default_model or ""
        resolved = resolve_parameters(
            self.provider.vendor_kind, model, GenerationParams(max_tokens=PROBE_MAX_TOKENS)
        )
        return VendorCall(
            provider=self.provider,
            model=model,
            messages=[ChatMessage(role="user", content=PROBE_PROMPT)],
            params=resolved.wire,
        )

    @staticmethod
    def now() -> int:
        return int(time.time())
