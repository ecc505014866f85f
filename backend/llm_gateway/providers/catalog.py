"""
Vendor templates and well-known model ids.

A template fills every provider field the administrator leaves unset on
create, and ``COMMON_MODELS`` backs the "seed common models" operation.
Timeouts and delays are in milliseconds.
"""
from typing import Any, Dict, List

from llm_gateway.models import VendorKind

_CLOUD_POLICY: Dict[str, Any] = {
    "request_timeout": 120_000,
    "connect_timeout": 30_000,
    "max_retries": 3,
    "retry_delay": 1000,
    "retry_backoff_multiplier": 2.0,
}

_LOCAL_POLICY: Dict[str, Any] = {
    "request_timeout": 300_000,
    "connect_timeout": 10_000,
    "max_retries": 2,
    "retry_delay": 500,
    "retry_backoff_multiplier": 1.5,
}

PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "openai": {
        **_CLOUD_POLICY,
        "name": "OpenAI",
        "provider_type": "cloud",
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o-mini",
        "default_top_p": 1.0,
        "concurrency_limit": 10,
        "supports_vision": True,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "gemini": {
        **_CLOUD_POLICY,
        "name": "Google Gemini",
        "provider_type": "cloud",
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "default_model": "gemini-1.5-flash",
        "default_top_p": 0.95,
        "default_top_k": 40,
        "concurrency_limit": 10,
        "supports_vision": True,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "anthropic": {
        **_CLOUD_POLICY,
        "name": "Anthropic Claude",
        "provider_type": "cloud",
        "base_url": "https://api.anthropic.com/v1",
        "default_model": "claude-3-5-sonnet-20241022",
        "default_max_tokens": 4096,
        "concurrency_limit": 5,
        "supports_vision": True,
        "supports_function_calling": True,
    },
    "ollama": {
        **_LOCAL_POLICY,
        "name": "Ollama (Local)",
        "provider_type": "local",
        "base_url": "http://localhost:11434",
        "default_model": "llama3.2",
        "default_top_p": 0.9,
        "default_top_k": 40,
        "default_repeat_penalty": 1.1,
        "concurrency_limit": 2,
        "supports_vision": True,
        "supports_json_mode": True,
        "skip_tls_verify": True,
    },
    "lmstudio": {
        **_LOCAL_POLICY,
        "name": "LM Studio (Local)",
        "provider_type": "local",
        "base_url": "http://localhost:1234/v1",
        "default_model": "local-model",
        "default_top_p": 0.9,
        "concurrency_limit": 1,
        "skip_tls_verify": True,
    },
    "azure-openai": {
        **_CLOUD_POLICY,
        "name": "Azure OpenAI",
        "provider_type": "cloud",
        "default_model": "gpt-4o-mini",
        "concurrency_limit": 10,
        "supports_vision": True,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "openrouter": {
        **_CLOUD_POLICY,
        "name": "OpenRouter",
        "provider_type": "cloud",
        "base_url": "https://openrouter.ai/api/v1",
        "default_model": "openai/gpt-4o-mini",
        "concurrency_limit": 10,
        "supports_vision": True,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "together": {
        **_CLOUD_POLICY,
        "name": "Together AI",
        "provider_type": "cloud",
        "base_url": "https://api.together.xyz/v1",
        "default_model": "meta-llama/Llama-3.2-3B-Instruct-Turbo",
        "default_top_p": 0.9,
        "concurrency_limit": 10,
        "supports_json_mode": True,
    },
    "groq": {
        **_CLOUD_POLICY,
        "name": "Groq",
        "provider_type": "cloud",
        "base_url": "https://api.groq.com/openai/v1",
        "default_model": "llama-3.3-70b-versatile",
        "request_timeout": 60_000,
        "connect_timeout": 10_000,
        "retry_delay": 500,
        "concurrency_limit": 10,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "mistral": {
        **_CLOUD_POLICY,
        "name": "Mistral AI",
        "provider_type": "cloud",
        "base_url": "https://api.mistral.ai/v1",
        "default_model": "mistral-small-latest",
        "concurrency_limit": 10,
        "supports_function_calling": True,
        "supports_json_mode": True,
    },
    "cohere": {
        **_CLOUD_POLICY,
        "name": "Cohere",
        "provider_type": "cloud",
        "base_url": "https://api.cohere.ai/compatibility/v1",
        "default_model": "command-r-plus",
        "default_top_p": 0.75,
        "concurrency_limit": 10,
    },
    "custom": {
        **_CLOUD_POLICY,
        "name": "Custom Provider",
        "provider_type": "custom",
        "concurrency_limit": 5,
        "supports_streaming": False,
    },
}

COMMON_MODELS: Dict[str, List[Dict[str, Any]]] = {
    "openai": [
        {"model_id": "gpt-4o", "name": "GPT-4o", "context_length": 128000},
        {"model_id": "gpt-4o-mini", "name": "GPT-4o Mini", "context_length": 128000},
        {"model_id": "gpt-4-turbo", "name": "GPT-4 Turbo", "context_length": 128000},
        {"model_id": "gpt-4", "name": "GPT-4", "context_length": 8192},
        {"model_id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "context_length": 16385},
        {"model_id": "o1-preview", "name": "o1 Preview", "context_length": 128000},
        {"model_id": "o1-mini", "name": "o1 Mini", "context_length": 128000},
    ],
    "gemini": [
        {"model_id": "gemini-2.0-flash-exp", "name": "Gemini 2.0 Flash", "context_length": 1000000},
        {"model_id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro", "context_length": 2000000},
        {"model_id": "gemini-1.5-flash", "name": "Gemini 1.5 Flash", "context_length": 1000000},
        {"model_id": "gemini-1.0-pro", "name": "Gemini 1.0 Pro", "context_length": 32760},
    ],
    "anthropic": [
        {"model_id": "claude-3-5-sonnet-20241022", "name": "Claude 3.5 Sonnet", "context_length": 200000},
        {"model_id": "claude-3-5-haiku-20241022", "name": "Claude 3.5 Haiku", "context_length": 200000},
        {"model_id": "claude-3-opus-20240229", "name": "Claude 3 Opus", "context_length": 200000},
    ],
    "ollama": [
        {"model_id": "llama3.2", "name": "Llama 3.2", "context_length": 128000},
        {"model_id": "llama3.2:1b", "name": "Llama 3.2 1B", "context_length": 128000},
        {"model_id": "llama3.1", "name": "Llama 3.1", "context_length": 128000},
        {"model_id": "mistral", "name": "Mistral 7B", "context_length": 32000},
        {"model_id": "mixtral", "name": "Mixtral 8x7B", "context_length": 32000},
        {"model_id": "codellama", "name": "Code Llama", "context_length": 16000},
        {"model_id": "deepseek-coder-v2", "name": "DeepSeek Coder V2", "context_length": 128000},
        {"model_id": "qwen2.5", "name": "Qwen 2.5", "context_length": 128000},
        {"model_id": "phi3", "name": "Phi-3", "context_length": 128000},
        {"model_id": "gemma2", "name": "Gemma 2", "context_length": 8192},
    ],
    "lmstudio": [
        {"model_id": "local-model", "name": "Local Model (Auto-detect)", "context_length": 4096},
    ],
    "azure-openai": [
        {"model_id": "gpt-4o", "name": "GPT-4o", "context_length": 128000},
        {"model_id": "gpt-4o-mini", "name": "GPT-4o Mini", "context_length": 128000},
        {"model_id": "gpt-4", "name": "GPT-4", "context_length": 8192},
        {"model_id": "gpt-35-turbo", "name": "GPT-3.5 Turbo", "context_length": 16385},
    ],
    "openrouter": [
        {"model_id": "openai/gpt-4o", "name": "GPT-4o", "context_length": 128000},
        {"model_id": "anthropic/claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "context_length": 200000},
        {"model_id": "google/gemini-pro-1.5", "name": "Gemini 1.5 Pro", "context_length": 2000000},
        {"model_id": "meta-llama/llama-3.1-405b-instruct", "name": "Llama 3.1 405B", "context_length": 128000},
    ],
    "together": [
        {"model_id": "meta-llama/Llama-3.2-3B-Instruct-Turbo", "name": "Llama 3.2 3B Turbo", "context_length": 128000},
        {"model_id": "meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo", "name": "Llama 3.1 70B Turbo", "context_length": 128000},
        {"model_id": "mistralai/Mixtral-8x7B-Instruct-v0.1", "name": "Mixtral 8x7B", "context_length": 32000},
    ],
    "groq": [
        {"model_id": "llama-3.3-70b-versatile", "name": "Llama 3.3 70B", "context_length": 128000},
        {"model_id": "llama-3.1-8b-instant", "name": "Llama 3.1 8B", "context_length": 128000},
        {"model_id": "mixtral-8x7b-32768", "name": "Mixtral 8x7B", "context_length": 32768},
        {"model_id": "gemma2-9b-it", "name": "Gemma 2 9B", "context_length": 8192},
    ],
    "mistral": [
        {"model_id": "mistral-large-latest", "name": "Mistral Large", "context_length": 128000},
        {"model_id": "mistral-small-latest", "name": "Mistral Small", "context_length": 32000},
        {"model_id": "codestral-latest", "name": "Codestral", "context_length": 32000},
        {"model_id": "open-mixtral-8x22b", "name": "Mixtral 8x22B", "context_length": 64000},
    ],
    "cohere": [
        {"model_id": "command-r-plus", "name": "Command R+", "context_length": 128000},
        {"model_id": "command-r", "name": "Command R", "context_length": 128000},
        {"model_id": "command", "name": "Command", "context_length": 4096},
    ],
    "custom": [],
}

# Vendors created (disabled) by "seed default providers", with their priority
SEED_VENDORS: Dict[str, int] = {
    "openai": 100,
    "gemini": 90,
    "ollama": 50,
    "lmstudio": 50,
    "anthropic": 50,
    "groq": 50,
}

_VENDOR_KINDS: Dict[str, VendorKind] = {
    "gemini": VendorKind.GEMINI,
    "anthropic": VendorKind.ANTHROPIC,
    "ollama": VendorKind.LOCAL,
}


def vendor_kind_for(vendor: str) -> VendorKind:
    # Anything unrecognised speaks the OpenAI wire format
    return _VENDOR_KINDS.get(vendor, VendorKind.OPENAI_COMPATIBLE)


def template_for(vendor: str) -> Dict[str, Any]:
    return PROVIDER_DEFAULTS.get(vendor, PROVIDER_DEFAULTS["custom"])
