from fastapi import APIRouter

from llm_gateway.api.routes import chat, local, models, providers

api_router = APIRouter()
api_router.include_router(chat.router)
api_router.include_router(providers.router)
api_router.include_router(models.router)
api_router.include_router(local.router)
