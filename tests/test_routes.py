# tests/test_routes.py

from unittest import mock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from activation_api.core.config import Settings
from activation_api.main import create_app

from conftest import CODE, OTHER_CODE, UNKNOWN_CODE


async def test_activate_get_then_reuse(client):
    response = await client.get("/api/activate", params={"code": CODE, "user_id": "user-42"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["code"] == CODE
    assert body["used_by"] == "user-42"
    assert body["used_at"]

    response = await client.get("/api/activate", params={"code": CODE, "user_id": "user-99"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is False
    assert body["kind"] == "alreadyUsed"
    assert body["used_by"] == "user-42"
    assert body["used_at"]


async def test_activate_post(client):
    response = await client.post("/api/activate", json={"code": OTHER_CODE.upper()})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["code"] == OTHER_CODE
    assert body["used_by"] == "anonymous"


async def test_activate_post_invalid_json(client):
    response = await client.post(
        "/api/activate", content=b"{not json", headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["ok"] is False


async def test_activate_post_non_object(client):
    response = await client.post("/api/activate", json=[CODE])
    assert response.status_code == 400


async def test_activate_validation_failures(client):
    response = await client.get("/api/activate")
    assert response.json() == {"ok": False, "error": "activation code is required", "kind": "emptyCode"}

    response = await client.get("/api/activate", params={"code": "ABC"})
    assert response.status_code == 200
    assert response.json()["kind"] == "badFormat"


async def test_activate_unknown_code(client):
    response = await client.get("/api/activate", params={"code": UNKNOWN_CODE})
    assert response.status_code == 200
    assert response.json()["kind"] == "invalid"


async def test_activate_storage_fault_is_opaque(client, seeded_store):
    error = OperationalError("UPDATE activation_codes", {}, Exception("password=hunter2"))
    with mock.patch.object(seeded_store, "try_redeem", side_effect=error):
        response = await client.post("/api/activate", json={"code": CODE})
    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "internal server error", "kind": "internal"}


async def test_activate_method_not_allowed(client):
    response = await client.put("/api/activate", json={"code": CODE})
    assert response.status_code == 405


async def test_cors_preflight(client):
    response = await client.options(
        "/api/activate",
        headers={"Origin": "https://example.com", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


async def test_status(client):
    await client.get("/api/activate", params={"code": CODE, "user_id": "user-42"})
    response = await client.get("/api/status")
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["stats"] == {"total": 2, "used": 1, "available": 1}
    assert [r["code"] for r in body["recent_activations"]] == [CODE]
    assert body["recent_activations"][0]["used_by"] == "user-42"


async def test_status_storage_fault(client, seeded_store):
    with mock.patch.object(seeded_store, "stats", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        response = await client.get("/api/status")
    assert response.status_code == 500
    assert response.json()["ok"] is False


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["connected"] is True


async def test_env_does_not_leak_urls(client, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://user:secret@db/codes")
    response = await client.get("/api/env")
    assert response.status_code == 200
    assert response.json()["environment"]["DATABASE_URL"] is True
    assert "secret" not in response.text


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["activate"] == "/api/activate"


def test_app_without_database_reports_failures():
    app = create_app(settings=Settings(database_url=None))
    with TestClient(app) as client:
        response = client.get("/api/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

        response = client.get("/api/activate", params={"code": CODE})
        assert response.status_code == 500
        assert response.json()["kind"] == "internal"

        response = client.get("/api/activate", params={"code": "bad"})
        assert response.status_code == 200
        assert response.json()["kind"] == "badFormat"


async def test_activate_numeric_user_id_is_recorded(client):
    response = await client.post("/api/activate", json={"code": CODE, "user_id": 42})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["used_by"] == "42"


async def test_activate_unusable_user_id(client, seeded_store):
    response = await client.post("/api/activate", json={"code": CODE, "user_id": {"id": 42}})
    assert response.status_code == 200
    assert response.json()["kind"] == "badFormat"
    assert (await seeded_store.lookup(CODE)).is_used is False


async def test_activate_long_user_id(client, seeded_store):
    user_id = "u" * 300
    response = await client.get("/api/activate", params={"code": OTHER_CODE, "user_id": user_id})
    assert response.json()["used_by"] == user_id
    assert (await seeded_store.lookup(OTHER_CODE)).used_by == user_id


async def test_plain_options(client):
    response = await client.options("/api/activate")
    assert response.status_code == 200
