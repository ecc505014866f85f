from sqlmodel import Session

from llm_gateway import crud
from llm_gateway.models import LLMModel, LLMModelCreate, LLMProvider, LLMProviderCreate, ProviderConfig
from llm_gateway.providers.catalog import template_for, vendor_kind_for
from llm_gateway.tests.utils.utils import random_lower_string


def create_provider(db: Session, vendor: str = "openai", **overrides) -> LLMProvider:
    provider_in = LLMProviderCreate(vendor=vendor, **overrides)
    return crud.create_provider(session=db, provider_in=provider_in)


def create_random_model(db: Session, provider: LLMProvider, **overrides) -> LLMModel:
    model_id = overrides.pop("model_id", random_lower_string())
    model_in = LLMModelCreate(provider_id=provider.id, model_id=model_id, name=model_id, **overrides)
    return crud.create_model(session=db, model_in=model_in)


def provider_config(vendor: str = "openai", **overrides) -> ProviderConfig:
    """Detached provider snapshot, for adapter tests that need no store"""
    data = {
        **template_for(vendor),
        "id": 1,
        "slug": vendor,
        "vendor": vendor,
        "vendor_kind": vendor_kind_for(vendor),
    }
    data.update(overrides)
    return ProviderConfig.model_validate(data)
