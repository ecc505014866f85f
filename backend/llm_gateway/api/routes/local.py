from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from llm_gateway.api.deps import TransportDep
from llm_gateway.core.config import settings
from llm_gateway.errors import LLMError
from llm_gateway.providers import OllamaAdapter, adhoc_provider, get_adapter
from llm_gateway.schemas import LocalModelInfo, PullRequest

router = APIRouter(prefix="/llm", tags=["local"])
logger = structlog.get_logger()


def _error_text(e: LLMError, fallback: str) -> str:
    return e.message if settings.expose_error_details else fallback


@router.get("/ollama/models")
async def list_ollama_models(
    transport: TransportDep,
    base_url: Optional[str] = Query(default=None, alias="baseUrl"),
) -> Dict[str, Any]:
    provider = adhoc_provider("ollama", base_url or settings.LLM_LOCAL_BASE_URL_OLLAMA)
    try:
        models = await get_adapter(provider, transport=transport).list_models()
    except LLMError as e:
        logger.warning("ollama_list_failed", base_url=provider.base_url, error=e.message)
        return {
            "success": False,
            "error": _error_text(e, "Failed to connect to Ollama. Please check if the service is running."),
            "data": [],
        }
    data = [LocalModelInfo(**m).model_dump(by_alias=True) for m in models]
    return {"success": True, "data": data}


@router.post("/ollama/pull")
async def pull_ollama_model(payload: PullRequest, transport: TransportDep):
    provider = adhoc_provider("ollama", payload.base_url or settings.LLM_LOCAL_BASE_URL_OLLAMA)
    try:
        await OllamaAdapter(provider, transport=transport).pull_model(payload.model_name)
    except LLMError as e:
        logger.warning("ollama_pull_failed", model=payload.model_name, error=e.message)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": _error_text(e, "Failed to pull model. Please check if Ollama is running."),
            },
        )
    logger.info("ollama_model_pulled", model=payload.model_name)
    return {"success": True, "message": f"Pulled model: {payload.model_name}"}


@router.get("/lmstudio/models")
async def list_lmstudio_models(
    transport: TransportDep,
    base_url: Optional[str] = Query(default=None, alias="baseUrl"),
) -> Dict[str, Any]:
    provider = adhoc_provider("lmstudio", base_url or settings.LLM_LOCAL_BASE_URL_LMSTUDIO)
    try:
        models = await get_adapter(provider, transport=transport).list_models()
    except LLMError as e:
        logger.warning("lmstudio_list_failed", base_url=provider.base_url, error=e.message)
        return {
            "success": False,
            "error": _error_text(e, "Failed to connect to LM Studio. Please check if the service is running."),
            "data": [],
        }
    data = [LocalModelInfo(id=m["id"]).model_dump(by_alias=True) for m in models]
    return {"success": True, "data": data}
