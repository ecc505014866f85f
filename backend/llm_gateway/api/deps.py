from collections.abc import Generator
from functools import lru_cache
from typing import Annotated, Optional

import httpx
from fastapi import Depends
from sqlmodel import Session

from llm_gateway.core.db import engine
from llm_gateway.services.health import HealthProber
from llm_gateway.services.router import Dispatcher


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    # None means a real network transport; tests override this
    return None


@lru_cache
def get_dispatcher() -> Dispatcher:
    return Dispatcher(engine=engine)


@lru_cache
def get_prober() -> HealthProber:
    return HealthProber(engine=engine)


SessionDep = Annotated[Session, Depends(get_db)]
TransportDep = Annotated[Optional[httpx.AsyncBaseTransport], Depends(get_transport)]
DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]
ProberDep = Annotated[HealthProber, Depends(get_prober)]
