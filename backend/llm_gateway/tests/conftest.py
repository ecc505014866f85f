import os

# The app module builds its engine at import time
os.environ["DATABASE_URL"] = "sqlite://"

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from llm_gateway.api.deps import get_db, get_dispatcher, get_prober, get_transport
from llm_gateway.main import app
from llm_gateway.services.health import HealthProber
from llm_gateway.services.router import Dispatcher
from llm_gateway.tests.utils.vendor import FakeVendor


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def vendor() -> FakeVendor:
    return FakeVendor()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def dispatcher(engine, vendor, sleeps) -> Dispatcher:
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return Dispatcher(engine=engine, transport=vendor.transport, sleep=record_sleep)


@pytest.fixture
def prober(engine, vendor) -> HealthProber:
    return HealthProber(engine=engine, transport=vendor.transport)


@pytest.fixture
def client(engine, dispatcher, prober, vendor) -> Generator[TestClient, None, None]:
    def get_test_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_prober] = lambda: prober
    app.dependency_overrides[get_transport] = lambda: vendor.transport
    yield TestClient(app)
    app.dependency_overrides.clear()
