"""
Parameter compatibility between the uniform request and each vendor.

Everything here is pure: no I/O, no store access. The dispatcher merges
request values with model and provider defaults, then asks
``resolve_parameters`` for the wire fields the selected vendor/model
accepts.

Unsupported fields are dropped, not rejected. A reasoning model that is
sent ``temperature`` gets a request without it; the caller is not told
beyond the ``dropped`` list and a debug log line. Stricter validation
would be a product decision, not a wire-format one.
"""
import re
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

from llm_gateway.models import VendorKind

# o1, o1-mini, o3-mini, openai/o4-mini, ...
REASONING_MODEL_RE = re.compile(r"^(?:[\w.-]+/)?o[134](?:-|$)", re.IGNORECASE)


class ModelClass(str, Enum):
    STANDARD = "standard"
    REASONING = "reasoning"


# (vendor kind, model class) -> {uniform field: wire field}
FIELD_RULES: Dict[Tuple[VendorKind, ModelClass], Dict[str, str]] = {
    (VendorKind.OPENAI_COMPATIBLE, ModelClass.STANDARD): {
        "temperature": "temperature",
        "max_tokens": "max_tokens",
        "top_p": "top_p",
        "frequency_penalty": "frequency_penalty",
        "presence_penalty": "presence_penalty",
        "stop": "stop",
    },
    (VendorKind.OPENAI_COMPATIBLE, ModelClass.REASONING): {
        "max_tokens": "max_completion_tokens",
    },
    (VendorKind.GEMINI, ModelClass.STANDARD): {
        "temperature": "temperature",
        "max_tokens": "maxOutputTokens",
        "top_p": "topP",
        "top_k": "topK",
        "stop": "stopSequences",
    },
    (VendorKind.ANTHROPIC, ModelClass.STANDARD): {
        "temperature": "temperature",
        "max_tokens": "max_tokens",
        "top_p": "top_p",
        "top_k": "top_k",
        "stop": "stop_sequences",
    },
    (VendorKind.LOCAL, ModelClass.STANDARD): {
        "temperature": "temperature",
        "max_tokens": "num_predict",
        "top_p": "top_p",
        "top_k": "top_k",
        "repeat_penalty": "repeat_penalty",
        "stop": "stop",
    },
}


@dataclass(frozen=True)
class GenerationParams:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    repeat_penalty: Optional[float] = None
    stop: Optional[Tuple[str, ...]] = None

    def items(self):
        for f in fields(self):
            yield f.name, getattr(self, f.name)


@dataclass(frozen=True)
class ResolvedParams:
    wire: Dict[str, Any]
    dropped: Tuple[str, ...] = ()
    model_class: ModelClass = ModelClass.STANDARD


class _RequestValues(Protocol):
    temperature: Optional[float]
    max_tokens: Optional[int]
    top_p: Optional[float]
    top_k: Optional[int]
    frequency_penalty: Optional[float]
    presence_penalty: Optional[float]
    repeat_penalty: Optional[float]
    stop: Optional[Any]


def classify_model(vendor_kind: VendorKind, model_id: str) -> ModelClass:
    # Only the OpenAI wire format has a distinct reasoning-model contract
    if vendor_kind == VendorKind.OPENAI_COMPATIBLE and REASONING_MODEL_RE.match(model_id):
        return ModelClass.REASONING
    return ModelClass.STANDARD


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def merge_parameters(request: _RequestValues, provider: Any, model: Any = None) -> GenerationParams:
    """Request value, else model default, else provider default"""
    stop = _first(request.stop, provider.default_stop_sequences)
    return GenerationParams(
        temperature=_first(request.temperature, getattr(model, "default_temperature", None), provider.default_temperature),
        max_tokens=_first(request.max_tokens, getattr(model, "default_max_tokens", None), provider.default_max_tokens),
        top_p=_first(request.top_p, getattr(model, "default_top_p", None), provider.default_top_p),
        top_k=_first(request.top_k, getattr(model, "default_top_k", None), provider.default_top_k),
        frequency_penalty=_first(request.frequency_penalty, provider.default_frequency_penalty),
        presence_penalty=_first(request.presence_penalty, provider.default_presence_penalty),
        repeat_penalty=_first(request.repeat_penalty, provider.default_repeat_penalty),
        stop=tuple(stop) if stop else None,
    )


def allowed_fields(vendor_kind: VendorKind, model_id: str) -> Dict[str, str]:
    model_class = classify_model(vendor_kind, model_id)
    return FIELD_RULES.get((vendor_kind, model_class), FIELD_RULES[(vendor_kind, ModelClass.STANDARD)])


def resolve_parameters(vendor_kind: VendorKind, model_id: str, params: GenerationParams) -> ResolvedParams:
    model_class = classify_model(vendor_kind, model_id)
    rules = allowed_fields(vendor_kind, model_id)
    wire: Dict[str, Any] = {}
    dropped = []
    for name, value in params.items():
        if value is None:
            continue
        wire_name = rules.get(name)
        if wire_name is None:
            dropped.append(name)
            continue
        wire[wire_name] = list(value) if isinstance(value, tuple) else value
    return ResolvedParams(wire=wire, dropped=tuple(dropped), model_class=model_class)
