from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Query

from llm_gateway import crud
from llm_gateway.api.deps import ProberDep, SessionDep
from llm_gateway.models import (
    LLMModelPublic,
    LLMProvider,
    LLMProviderCreate,
    LLMProviderPublic,
    LLMProviderUpdate,
    Message,
)
from llm_gateway.providers.catalog import COMMON_MODELS, PROVIDER_DEFAULTS
from llm_gateway.schemas import ProbeResult

router = APIRouter(prefix="/llm", tags=["providers"])


def _get_or_404(session, ref: str) -> LLMProvider:
    provider = crud.get_provider(session=session, ref=ref)
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")
    return provider


@router.get("/providers", response_model=List[LLMProviderPublic])
async def list_providers(
    session: SessionDep,
    include_disabled: bool = Query(default=True),
):
    providers = crud.list_providers(session=session, include_disabled=include_disabled)
    return [LLMProviderPublic.from_db(p) for p in providers]


@router.post("/providers", response_model=LLMProviderPublic)
async def create_provider(provider_in: LLMProviderCreate, session: SessionDep):
    """
    Create a provider. Fields left out are filled from the vendor template.
    """
    provider = crud.create_provider(session=session, provider_in=provider_in)
    return LLMProviderPublic.from_db(provider)


@router.get("/providers/{ref}", response_model=LLMProviderPublic)
async def get_provider(ref: str, session: SessionDep):
    return LLMProviderPublic.from_db(_get_or_404(session, ref))


@router.put("/providers/{ref}", response_model=LLMProviderPublic)
async def update_provider(ref: str, provider_in: LLMProviderUpdate, session: SessionDep):
    provider = _get_or_404(session, ref)
    updated = crud.update_provider(session=session, provider_id=provider.id, provider_in=provider_in)
    if not updated:
        raise HTTPException(status_code=404, detail="Provider not found")
    return LLMProviderPublic.from_db(updated)


@router.delete("/providers/{ref}", response_model=Message)
async def delete_provider(ref: str, session: SessionDep):
    provider = _get_or_404(session, ref)
    crud.delete_provider(session=session, provider_id=provider.id)
    return Message(message="Provider deleted successfully")


@router.post("/providers/{ref}/test", response_model=ProbeResult, response_model_by_alias=True)
async def test_provider(ref: str, prober: ProberDep):
    """
    Check connectivity. Always answers 200; the outcome is in the body.
    """
    return await prober.test(ref)


@router.post("/providers/{ref}/set-default", response_model=LLMProviderPublic)
async def set_default_provider(ref: str, session: SessionDep):
    provider = _get_or_404(session, ref)
    updated = crud.set_default_provider(session=session, provider_id=provider.id)
    if not updated:
        raise HTTPException(status_code=404, detail="Provider not found")
    return LLMProviderPublic.from_db(updated)


@router.post("/providers/{ref}/toggle", response_model=LLMProviderPublic)
async def toggle_provider(ref: str, session: SessionDep):
    provider = _get_or_404(session, ref)
    updated = crud.update_provider(
        session=session,
        provider_id=provider.id,
        provider_in=LLMProviderUpdate(is_enabled=not provider.is_enabled),
    )
    return LLMProviderPublic.from_db(updated)


@router.post("/providers/{ref}/seed-models", response_model=List[LLMModelPublic])
async def seed_provider_models(ref: str, session: SessionDep):
    provider = _get_or_404(session, ref)
    return crud.seed_common_models(session=session, provider_id=provider.id)


@router.post("/seed", response_model=List[LLMProviderPublic])
async def seed_providers(session: SessionDep):
    """
    Create disabled template providers for well-known vendors that are missing.
    Returns only the providers created by this call.
    """
    created = crud.seed_default_providers(session=session)
    return [LLMProviderPublic.from_db(p) for p in created]


@router.get("/defaults")
async def list_vendor_defaults() -> Dict[str, Dict[str, Any]]:
    return PROVIDER_DEFAULTS


@router.get("/defaults/{vendor}/models")
async def list_vendor_models(vendor: str) -> List[Dict[str, Any]]:
    if vendor not in PROVIDER_DEFAULTS:
        raise HTTPException(status_code=404, detail="Unknown vendor")
    return COMMON_MODELS.get(vendor, [])
