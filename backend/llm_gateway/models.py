from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import DateTime, Index, Text, UniqueConstraint, text
from sqlmodel import JSON, Column, Field, Relationship, SQLModel


class VendorKind(str, Enum):
    """Wire protocol family a provider speaks."""

    OPENAI_COMPATIBLE = "openai-compatible"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    LOCAL = "local"


class HealthStatus(str, Enum):
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


MASKED_SECRET = "••••••••"


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


# Provider Models

class LLMProviderBase(SQLModel):
    """Fields an administrator may configure on a provider"""
    name: str = Field(max_length=100)
    vendor: str = Field(max_length=50, index=True)  # template name: openai, gemini, ollama, ...
    description: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, sa_column=Column(Text))
    is_enabled: bool = Field(default=False)
    is_default: bool = Field(default=False)
    priority: int = Field(default=0)

    # Connection
    base_url: str | None = Field(default=None, max_length=500)
    api_key: str | None = Field(default=None, max_length=1024)
    api_version: str | None = Field(default=None, max_length=50)
    organization_id: str | None = Field(default=None, max_length=255)
    project_id: str | None = Field(default=None, max_length=255)
    custom_headers: Optional[Dict[str, str]] = Field(default=None, sa_column=Column(JSON))
    skip_tls_verify: bool = Field(default=False)

    # Generation defaults
    default_model: str | None = Field(default=None, max_length=255)
    default_temperature: float = Field(default=0.7)
    default_max_tokens: int = Field(default=2048)
    default_top_p: float | None = Field(default=None)
    default_top_k: int | None = Field(default=None)
    default_frequency_penalty: float = Field(default=0.0)
    default_presence_penalty: float = Field(default=0.0)
    default_repeat_penalty: float | None = Field(default=None)
    default_stop_sequences: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    default_streaming: bool = Field(default=False)

    # Capabilities
    supports_streaming: bool = Field(default=True)
    supports_vision: bool = Field(default=False)
    supports_function_calling: bool = Field(default=False)
    supports_json_mode: bool = Field(default=False)
    supports_system_message: bool = Field(default=True)

    # Timeout & retry (milliseconds)
    request_timeout: int = Field(default=120_000)
    connect_timeout: int = Field(default=30_000)
    max_retries: int = Field(default=3)
    retry_delay: int = Field(default=1000)
    retry_backoff_multiplier: float = Field(default=2.0)
    concurrency_limit: int = Field(default=5)
    rate_limit_rpm: int | None = Field(default=None)

    health_check_enabled: bool = Field(default=True)


class LLMProvider(LLMProviderBase, table=True):
    """A configured connection to one vendor account/endpoint"""
    __tablename__ = "llm_provider"
    __table_args__ = (
        # At most one default provider, whatever the writers do
        Index(
            "uq_llm_provider_single_default",
            "is_default",
            unique=True,
            sqlite_where=text("is_default"),
            postgresql_where=text("is_default"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    slug: str = Field(max_length=60, unique=True, index=True)
    vendor_kind: VendorKind = Field(default=VendorKind.OPENAI_COMPATIBLE)
    provider_type: str = Field(default="cloud", max_length=20)  # cloud | local | custom

    # Health
    health_status: HealthStatus = Field(default=HealthStatus.UNKNOWN)
    last_error: str | None = Field(default=None, sa_column=Column(Text))
    last_health_check: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))  # type: ignore
    consecutive_failures: int = Field(default=0)
    average_latency: int | None = Field(default=None)

    # Usage
    total_requests: int = Field(default=0)
    total_tokens_used: int = Field(default=0)
    total_errors: int = Field(default=0)

    created_at: datetime = Field(default_factory=get_datetime_utc, sa_type=DateTime(timezone=True))  # type: ignore
    updated_at: datetime = Field(default_factory=get_datetime_utc, sa_type=DateTime(timezone=True))  # type: ignore

    models: List["LLMModel"] = Relationship(back_populates="provider", cascade_delete=True)


class LLMProviderCreate(SQLModel):
    """Create payload; unset fields fall back to the vendor template"""
    vendor: str = Field(min_length=1, max_length=50)
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    notes: str | None = None
    is_enabled: bool | None = None
    is_default: bool | None = None
    priority: int | None = None
    base_url: str | None = None
    api_key: str | None = None
    api_version: str | None = None
    organization_id: str | None = None
    project_id: str | None = None
    custom_headers: Optional[Dict[str, str]] = None
    skip_tls_verify: bool | None = None
    default_model: str | None = None
    default_temperature: float | None = Field(default=None, ge=0, le=2)
    default_max_tokens: int | None = Field(default=None, ge=1)
    default_top_p: float | None = Field(default=None, ge=0, le=1)
    default_top_k: int | None = Field(default=None, ge=1)
    default_frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    default_presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    default_repeat_penalty: float | None = Field(default=None, ge=0, le=2)
    default_stop_sequences: Optional[List[str]] = None
    default_streaming: bool | None = None
    request_timeout: int | None = Field(default=None, ge=1000)
    connect_timeout: int | None = Field(default=None, ge=1000)
    max_retries: int | None = Field(default=None, ge=0, le=10)
    retry_delay: int | None = Field(default=None, ge=0)
    retry_backoff_multiplier: float | None = Field(default=None, ge=1, le=5)
    concurrency_limit: int | None = Field(default=None, ge=1)
    rate_limit_rpm: int | None = Field(default=None, ge=1)
    health_check_enabled: bool | None = None


class LLMProviderUpdate(LLMProviderCreate):
    vendor: str | None = Field(default=None, max_length=50)  # type: ignore


class ProviderConfig(LLMProviderBase):
    """Detached snapshot of a provider row, taken when a call is resolved.

    Adapters and the retry loop only ever see this copy, so a provider
    edited or deleted mid-call does not change the call in flight.
    """
    id: int
    slug: str
    vendor_kind: VendorKind
    provider_type: str = "cloud"

    @property
    def requires_credential(self) -> bool:
        if self.vendor_kind in (VendorKind.GEMINI, VendorKind.ANTHROPIC):
            return True
        return self.provider_type == "cloud"


class LLMModelPublic(SQLModel):
    id: int
    provider_id: int
    model_id: str
    name: str
    description: str | None = None
    model_type: str
    is_enabled: bool
    is_default: bool
    context_length: int | None = None
    max_output_tokens: int | None = None
    default_temperature: float | None = None
    default_max_tokens: int | None = None
    default_top_p: float | None = None
    default_top_k: int | None = None
    supports_vision: bool
    supports_function_calling: bool
    supports_json_mode: bool
    supports_streaming: bool
    total_requests: int
    total_input_tokens: int
    total_output_tokens: int


class LLMProviderPublic(LLMProviderBase):
    """Admin view of a provider; secrets are masked"""
    id: int
    slug: str
    vendor_kind: VendorKind
    provider_type: str
    health_status: HealthStatus
    last_error: str | None = None
    last_health_check: datetime | None = None
    consecutive_failures: int
    average_latency: int | None = None
    total_requests: int
    total_tokens_used: int
    total_errors: int
    created_at: datetime
    updated_at: datetime
    models: List[LLMModelPublic] = []

    @classmethod
    def from_db(cls, provider: LLMProvider) -> "LLMProviderPublic":
        data = provider.model_dump()
        data["api_key"] = MASKED_SECRET if provider.api_key else None
        data["models"] = [LLMModelPublic.model_validate(m, from_attributes=True) for m in provider.models]
        return cls.model_validate(data)


# Model Models

class LLMModelBase(SQLModel):
    model_id: str = Field(max_length=255)  # vendor-facing id, e.g. "gpt-4o-mini"
    name: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=500)
    model_type: str = Field(default="chat", max_length=20)
    is_enabled: bool = Field(default=True)
    is_default: bool = Field(default=False)
    context_length: int | None = Field(default=None)
    max_output_tokens: int | None = Field(default=None)

    # Per-model overrides of the provider defaults
    default_temperature: float | None = Field(default=None)
    default_max_tokens: int | None = Field(default=None)
    default_top_p: float | None = Field(default=None)
    default_top_k: int | None = Field(default=None)

    supports_vision: bool = Field(default=False)
    supports_function_calling: bool = Field(default=False)
    supports_json_mode: bool = Field(default=False)
    supports_streaming: bool = Field(default=True)

    input_price_per_1m: float | None = Field(default=None)
    output_price_per_1m: float | None = Field(default=None)


class LLMModel(LLMModelBase, table=True):
    """A specific model exposed by a provider"""
    __tablename__ = "llm_model"
    __table_args__ = (
        UniqueConstraint("provider_id", "model_id", name="uq_llm_model_provider_model"),
        Index(
            "uq_llm_model_single_default",
            "provider_id",
            unique=True,
            sqlite_where=text("is_default"),
            postgresql_where=text("is_default"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="llm_provider.id", ondelete="CASCADE", index=True)
    provider: LLMProvider = Relationship(back_populates="models")

    total_requests: int = Field(default=0)
    total_input_tokens: int = Field(default=0)
    total_output_tokens: int = Field(default=0)

    created_at: datetime = Field(default_factory=get_datetime_utc, sa_type=DateTime(timezone=True))  # type: ignore
    updated_at: datetime = Field(default_factory=get_datetime_utc, sa_type=DateTime(timezone=True))  # type: ignore


class LLMModelCreate(LLMModelBase):
    provider_id: int


class LLMModelUpdate(SQLModel):
    name: str | None = None
    description: str | None = None
    model_type: str | None = None
    is_enabled: bool | None = None
    is_default: bool | None = None
    context_length: int | None = None
    max_output_tokens: int | None = None
    default_temperature: float | None = Field(default=None, ge=0, le=2)
    default_max_tokens: int | None = Field(default=None, ge=1)
    default_top_p: float | None = Field(default=None, ge=0, le=1)
    default_top_k: int | None = Field(default=None, ge=1)
    supports_vision: bool | None = None
    supports_function_calling: bool | None = None
    supports_json_mode: bool | None = None
    supports_streaming: bool | None = None
    input_price_per_1m: float | None = None
    output_price_per_1m: float | None = None


# Generic message
class Message(SQLModel):
    message: str
