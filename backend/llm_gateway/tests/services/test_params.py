import pytest

from llm_gateway.models import LLMModelBase, ProviderConfig, VendorKind
from llm_gateway.schemas import ChatMessage, ChatRequest
from llm_gateway.services.params import (
    GenerationParams,
    ModelClass,
    classify_model,
    merge_parameters,
    resolve_parameters,
)

FULL = GenerationParams(
    temperature=0.5,
    max_tokens=256,
    top_p=0.9,
    top_k=20,
    frequency_penalty=0.1,
    presence_penalty=0.2,
    repeat_penalty=1.1,
    stop=("END",),
)


@pytest.mark.parametrize(
    "model_id",
    ["o1", "o1-mini", "o3-mini", "o4-mini", "O1-preview", "openai/o3-mini"],
)
def test_reasoning_models_are_detected(model_id: str) -> None:
    assert classify_model(VendorKind.OPENAI_COMPATIBLE, model_id) == ModelClass.REASONING


@pytest.mark.parametrize("model_id", ["gpt-4o", "gpt-4o-mini", "o2", "ollama-o1", "pro1"])
def test_standard_models_are_not_reasoning(model_id: str) -> None:
    assert classify_model(VendorKind.OPENAI_COMPATIBLE, model_id) == ModelClass.STANDARD


def test_reasoning_rules_only_apply_to_openai_wire_format() -> None:
    assert classify_model(VendorKind.LOCAL, "o1") == ModelClass.STANDARD


def test_reasoning_model_drops_sampling_and_renames_max_tokens() -> None:
    resolved = resolve_parameters(VendorKind.OPENAI_COMPATIBLE, "o1-mini", FULL)
    assert resolved.wire == {"max_completion_tokens": 256}
    assert "temperature" not in resolved.wire
    assert "max_tokens" not in resolved.wire
    assert set(resolved.dropped) == {
        "temperature", "top_p", "top_k", "frequency_penalty", "presence_penalty", "repeat_penalty", "stop",
    }


def test_openai_standard_fields() -> None:
    resolved = resolve_parameters(VendorKind.OPENAI_COMPATIBLE, "gpt-4o", FULL)
    assert resolved.wire == {
        "temperature": 0.5,
        "max_tokens": 256,
        "top_p": 0.9,
        "frequency_penalty": 0.1,
        "presence_penalty": 0.2,
        "stop": ["END"],
    }
    assert set(resolved.dropped) == {"top_k", "repeat_penalty"}


def test_gemini_field_names() -> None:
    resolved = resolve_parameters(VendorKind.GEMINI, "gemini-1.5-flash", FULL)
    assert resolved.wire == {
        "temperature": 0.5,
        "maxOutputTokens": 256,
        "topP": 0.9,
        "topK": 20,
        "stopSequences": ["END"],
    }


def test_anthropic_field_names() -> None:
    resolved = resolve_parameters(VendorKind.ANTHROPIC, "claude-3-5-sonnet-20241022", FULL)
    assert resolved.wire == {
        "temperature": 0.5,
        "max_tokens": 256,
        "top_p": 0.9,
        "top_k": 20,
        "stop_sequences": ["END"],
    }


def test_local_field_names() -> None:
    resolved = resolve_parameters(VendorKind.LOCAL, "llama3.2", FULL)
    assert resolved.wire == {
        "temperature": 0.5,
        "num_predict": 256,
        "top_p": 0.9,
        "top_k": 20,
        "repeat_penalty": 1.1,
        "stop": ["END"],
    }


def test_unset_values_are_never_emitted() -> None:
    resolved = resolve_parameters(VendorKind.ANTHROPIC, "claude", GenerationParams(temperature=0.0))
    assert resolved.wire == {"temperature": 0.0}
    assert resolved.dropped == ()


def _provider(**overrides) -> ProviderConfig:
    data = dict(id=1, slug="openai", name="OpenAI", vendor="openai", vendor_kind=VendorKind.OPENAI_COMPATIBLE)
    data.update(overrides)
    return ProviderConfig(**data)


def test_merge_prefers_request_then_model_then_provider() -> None:
    request = ChatRequest(messages=[ChatMessage(role="user", content="Hi")], top_p=0.5)
    model = LLMModelBase(model_id="gpt-4o", name="GPT-4o", default_temperature=0.2)
    provider = _provider(default_temperature=0.7, default_max_tokens=1024, default_top_p=1.0)

    params = merge_parameters(request, provider, model)
    assert params.top_p == 0.5
    assert params.temperature == 0.2
    assert params.max_tokens == 1024


def test_merge_uses_provider_stop_sequences() -> None:
    request = ChatRequest(messages=[ChatMessage(role="user", content="Hi")])
    params = merge_parameters(request, _provider(default_stop_sequences=["###"]))
    assert params.stop == ("###",)
