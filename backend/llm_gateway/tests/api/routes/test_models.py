from fastapi.testclient import TestClient
from sqlmodel import Session

from llm_gateway.core.config import settings
from llm_gateway.tests.utils.provider import create_provider, create_random_model

MODELS_URL = f"{settings.API_V1_STR}/llm/models"


def test_create_model(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    data = {"provider_id": provider.id, "model_id": "gpt-4o", "name": "GPT-4o", "is_default": True}
    r = client.post(MODELS_URL, json=data)
    assert r.status_code == 200
    content = r.json()
    assert content["model_id"] == "gpt-4o"
    assert content["is_default"] is True
    assert content["total_requests"] == 0


def test_create_model_duplicate(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    create_random_model(db, provider, model_id="gpt-4o")
    r = client.post(MODELS_URL, json={"provider_id": provider.id, "model_id": "gpt-4o", "name": "again"})
    assert r.status_code == 409


def test_create_model_unknown_provider(client: TestClient) -> None:
    r = client.post(MODELS_URL, json={"provider_id": 9999, "model_id": "x", "name": "x"})
    assert r.status_code == 404


def test_list_models_by_provider(client: TestClient, db: Session) -> None:
    openai = create_provider(db, vendor="openai")
    groq = create_provider(db, vendor="groq")
    create_random_model(db, openai)
    create_random_model(db, openai)
    create_random_model(db, groq)

    r = client.get(MODELS_URL, params={"provider_id": openai.id})
    assert r.status_code == 200
    assert len(r.json()) == 2
    assert all(m["provider_id"] == openai.id for m in r.json())
    assert len(client.get(MODELS_URL).json()) == 3


def test_update_model(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    model = create_random_model(db, provider)
    r = client.put(f"{MODELS_URL}/{model.id}", json={"name": "Updated", "default_temperature": 0.4})
    assert r.status_code == 200
    assert r.json()["name"] == "Updated"
    assert r.json()["default_temperature"] == 0.4


def test_update_model_null_on_required_field_keeps_value(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    model = create_random_model(db, provider, model_id="gpt-4o")
    r = client.put(f"{MODELS_URL}/{model.id}", json={"name": None, "is_enabled": None, "description": "fast"})
    assert r.status_code == 200
    content = r.json()
    assert content["name"] == "gpt-4o"
    assert content["is_enabled"] is True
    assert content["description"] == "fast"


def test_update_model_not_found(client: TestClient) -> None:
    r = client.put(f"{MODELS_URL}/9999", json={"name": "Updated"})
    assert r.status_code == 404
    assert r.json()["detail"] == "Model not found"


def test_set_default_model(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    first = create_random_model(db, provider, is_default=True)
    second = create_random_model(db, provider)

    r = client.post(f"{MODELS_URL}/{second.id}/set-default")

    assert r.status_code == 200
    assert r.json()["is_default"] is True
    defaults = [m["id"] for m in client.get(MODELS_URL, params={"provider_id": provider.id}).json() if m["is_default"]]
    assert defaults == [second.id]
    assert first.id not in defaults


def test_delete_model(client: TestClient, db: Session) -> None:
    provider = create_provider(db, vendor="openai")
    model = create_random_model(db, provider)
    r = client.delete(f"{MODELS_URL}/{model.id}")
    assert r.status_code == 200
    assert client.delete(f"{MODELS_URL}/{model.id}").status_code == 404
