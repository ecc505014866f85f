from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted too
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


# Canonical
class ChatMessage(_CamelModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(_CamelModel):
    messages: List[ChatMessage] = Field(min_length=1)
    provider: Optional[Union[int, str]] = None  # slug or id
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    repeat_penalty: Optional[float] = None
    stop: Optional[List[str]] = None
    stream: bool = False


class ChatChoice(_CamelModel):
    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatUsage(_CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(_CamelModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    provider: str
    choices: List[ChatChoice]
    usage: ChatUsage = Field(default_factory=ChatUsage)
    latency_ms: Optional[int] = None


# Admin surface
class ProbeResult(_CamelModel):
    success: bool
    message: str
    latency_ms: Optional[int] = None


class LocalModelInfo(_CamelModel):
    id: str
    size: Optional[int] = None
    modified_at: Optional[str] = None


class PullRequest(_CamelModel):
    model_name: str = Field(min_length=1)
    base_url: Optional[str] = None


# Public listing of what callers can dispatch to; no secrets, no policy
class ActiveModel(_CamelModel):
    id: int
    model_id: str
    name: str
    is_default: bool = False


class ActiveProvider(_CamelModel):
    id: int
    slug: str
    name: str
    vendor: str
    vendor_kind: str
    provider_type: str
    is_default: bool = False
    default_model: Optional[str] = None
    models: List[ActiveModel] = []
