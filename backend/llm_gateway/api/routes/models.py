from typing import List

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from llm_gateway import crud
from llm_gateway.api.deps import SessionDep
from llm_gateway.models import LLMModelCreate, LLMModelPublic, LLMModelUpdate, Message

router = APIRouter(prefix="/llm", tags=["models"])


@router.get("/models", response_model=List[LLMModelPublic])
async def list_models(session: SessionDep, provider_id: int | None = Query(default=None)):
    return crud.list_models(session=session, provider_id=provider_id)


@router.post("/models", response_model=LLMModelPublic)
async def create_model(model_in: LLMModelCreate, session: SessionDep):
    if not crud.get_provider(session=session, ref=model_in.provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    try:
        return crud.create_model(session=session, model_in=model_in)
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Model already exists for this provider")


@router.put("/models/{model_id}", response_model=LLMModelPublic)
async def update_model(model_id: int, model_in: LLMModelUpdate, session: SessionDep):
    model = crud.update_model(session=session, model_id=model_id, model_in=model_in)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return model


@router.delete("/models/{model_id}", response_model=Message)
async def delete_model(model_id: int, session: SessionDep):
    if not crud.delete_model(session=session, model_id=model_id):
        raise HTTPException(status_code=404, detail="Model not found")
    return Message(message="Model deleted successfully")


@router.post("/models/{model_id}/set-default", response_model=LLMModelPublic)
async def set_default_model(model_id: int, session: SessionDep):
    model = crud.get_model(session=session, model_id=model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Model not found")
    return crud.set_default_model(session=session, provider_id=model.provider_id, model_id=model_id)
