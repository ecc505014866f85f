from typing import List

import structlog
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from llm_gateway import crud
from llm_gateway.api.deps import DispatcherDep, SessionDep
from llm_gateway.schemas import ActiveModel, ActiveProvider, ChatRequest, ChatResponse
from llm_gateway.utils.idempotency import get_cached_response, set_cached_response
from llm_gateway.utils.rate_limit import get_limiter

router = APIRouter(prefix="/llm", tags=["llm"])
logger = structlog.get_logger()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    request: Request,
    dispatcher: DispatcherDep,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    """
    Send a conversation to the selected (or default) provider and return
    the uniform completion.
    """
    request_id = getattr(request.state, "request_id", None)
    api_key = x_api_key or "public"

    # Rate limit per API key
    limiter = get_limiter(api_key)
    async with limiter:
        if idempotency_key:
            cached = await get_cached_response(api_key, idempotency_key)
            if cached:
                logger.info("idempotent_replay", request_id=request_id)
                return JSONResponse(content=cached)

        response = await dispatcher.chat(payload, request_id=request_id)
        body = response.model_dump(mode="json", by_alias=True)

        if idempotency_key:
            await set_cached_response(api_key, idempotency_key, body)
        return JSONResponse(content=body)


@router.get("/active", response_model=List[ActiveProvider], response_model_by_alias=True)
async def list_active(session: SessionDep):
    """
    Enabled providers and their enabled models.
    """
    result = []
    for provider in crud.list_providers(session=session):
        result.append(
            ActiveProvider(
                id=provider.id,
                slug=provider.slug,
                name=provider.name,
                vendor=provider.vendor,
                vendor_kind=provider.vendor_kind.value,
                provider_type=provider.provider_type,
                is_default=provider.is_default,
                default_model=provider.default_model,
                models=[
                    ActiveModel(id=m.id, model_id=m.model_id, name=m.name, is_default=m.is_default)
                    for m in crud.list_models(session=session, provider_id=provider.id)
                    if m.is_enabled
                ],
            )
        )
    return result
