from typing import Dict, Optional, Type

import httpx

from llm_gateway.models import ProviderConfig, VendorKind
from llm_gateway.providers.anthropic_provider import AnthropicAdapter
from llm_gateway.providers.base import VendorAdapter, VendorCall
from llm_gateway.providers.catalog import template_for, vendor_kind_for
from llm_gateway.providers.gemini_provider import GeminiAdapter
from llm_gateway.providers.ollama_provider import OllamaAdapter
from llm_gateway.providers.openai_provider import OpenAICompatibleAdapter

ADAPTERS: Dict[VendorKind, Type[VendorAdapter]] = {
    VendorKind.OPENAI_COMPATIBLE: OpenAICompatibleAdapter,
    VendorKind.GEMINI: GeminiAdapter,
    VendorKind.ANTHROPIC: AnthropicAdapter,
    VendorKind.LOCAL: OllamaAdapter,
}


def get_adapter(
    provider: ProviderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> VendorAdapter:
    adapter_cls = ADAPTERS.get(provider.vendor_kind, OpenAICompatibleAdapter)
    return adapter_cls(provider, transport=transport)


def adhoc_provider(vendor: str, base_url: Optional[str] = None) -> ProviderConfig:
    """Unsaved provider built from a vendor template, for local discovery tools"""
    template = template_for(vendor)
    return ProviderConfig.model_validate(
        {
            **template,
            "id": 0,
            "slug": vendor,
            "vendor": vendor,
            "vendor_kind": vendor_kind_for(vendor),
            "base_url": base_url or template.get("base_url"),
        }
    )


__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "GeminiAdapter",
    "OllamaAdapter",
    "OpenAICompatibleAdapter",
    "VendorAdapter",
    "VendorCall",
    "adhoc_provider",
    "get_adapter",
]
