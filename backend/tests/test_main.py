import json

import httpx
import pytest
from fastapi.testclient import TestClient

from apiprobe.db import get_db
from apiprobe.main import create_app


class Upstream:
    """Stands in for the proxy and the store."""

    def __init__(self):
        self.requests = []
        self.store_down = False

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if request.url.host == "proxy.test":
            payload = json.loads(request.content)
            return httpx.Response(
                200, json={"status": 200, "data": {"echo": payload["url"]}, "time": "3 ms", "size": "20 B"}
            )
        if self.store_down:
            raise httpx.ConnectError("refused", request=request)
        if request.method == "GET" and request.url.path == "/api/history":
            return httpx.Response(
                200, json=[{"id": 5, "url": "https://e.com", "method": "GET", "created_at": "2024-05-01"}]
            )
        if request.method == "GET" and request.url.path == "/api/collections":
            return httpx.Response(200, json=[{"id": 1, "name": "Smoke", "items": []}])
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(201, json={"ok": True})

    def store_calls(self, path):
        return [r for r in self.requests if r.url.host == "store.test" and r.url.path == path]


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(upstream, session_factory):
    app = create_app(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
        session_factory=session_factory,
    )

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_send_with_environment_end_to_end(client, upstream):
    env_id = client.post(
        "/environments",
        json={"name": "dev", "variables": [{"key": "path", "value": "v1/users"}]},
        headers={"user-id": "u1"},
    ).json()["id"]

    res = client.post(
        "/send",
        json={"url": "https://api.example.com/{{path}}", "method": "GET", "environment_id": env_id, "user_id": "u1"},
    )

    assert res.status_code == 200
    assert res.json() == {
        "kind": "response",
        "status": 200,
        "data": {"echo": "https://api.example.com/v1/users"},
        "time": "3 ms",
        "size": "20 B",
    }
    proxied = [r for r in upstream.requests if r.url.host == "proxy.test"]
    assert len(proxied) == 1


def test_send_errors_are_returned_as_reports(client, upstream):
    res = client.post("/send", json={"url": "https://e.com", "method": "POST", "body": "{not json"})

    assert res.status_code == 200
    assert res.json() == {
        "kind": "error",
        "title": "Invalid JSON",
        "message": "The request body contains invalid JSON. Please check your syntax.",
        "status": "Client Error",
    }
    assert upstream.requests == []


def test_send_rejects_unknown_method(client):
    res = client.post("/send", json={"url": "https://e.com", "method": "TRACE"})

    assert res.status_code == 422


def test_environment_crud(client):
    created = client.post(
        "/environments",
        json={
            "name": "staging",
            "variables": [
                {"key": "host", "value": "staging.example.com"},
                {"key": "", "value": "dropped"},
                {"key": "token", "value": "t", "enabled": False},
            ],
        },
        headers={"user-id": "u1"},
    )
    assert created.status_code == 201
    env_id = created.json()["id"]
    client.post("/environments", json={"name": "other"}, headers={"user-id": "u2"})

    listed = client.get("/environments", headers={"user-id": "u1"}).json()
    assert listed == [{"id": env_id, "user_id": "u1", "name": "staging"}]

    env = client.get(f"/environments/{env_id}").json()
    assert env["variables"] == [
        {"key": "host", "value": "staging.example.com", "enabled": True},
        {"key": "token", "value": "t", "enabled": False},
    ]

    updated = client.put(
        f"/environments/{env_id}", json={"name": "stage", "variables": [{"key": "host", "value": "s2"}]}
    ).json()
    assert updated["name"] == "stage"
    assert updated["variables"] == [{"key": "host", "value": "s2", "enabled": True}]

    assert client.delete(f"/environments/{env_id}").status_code == 204
    assert client.get(f"/environments/{env_id}").status_code == 404


def test_history_routes_forward_user_header(client, upstream):
    items = client.get("/history", headers={"user-id": "u1"}).json()
    assert items == [{"id": 5, "url": "https://e.com", "method": "GET", "created_at": "2024-05-01"}]

    assert client.delete("/history/5", headers={"user-id": "u1"}).status_code == 204
    assert client.delete("/history", headers={"user-id": "u1"}).status_code == 204

    assert [r.headers["user-id"] for r in upstream.store_calls("/api/history")] == ["u1", "u1"]
    assert upstream.store_calls("/api/history/5")[0].method == "DELETE"


def test_history_requires_user_header(client):
    assert client.get("/history").status_code == 422


def test_save_collection_item_keeps_placeholders_and_parses_body(client, upstream):
    res = client.post(
        "/collection-items",
        json={
            "collection_id": 1,
            "name": "List users",
            "url": "https://api.example.com/{{path}}",
            "method": "POST",
            "headers": [{"key": "A", "value": "{{token}}"}, {"key": "", "value": "x"}],
            "body": '{"n": 1}',
            "user_id": "u1",
        },
    )

    assert res.status_code == 201
    sent = json.loads(upstream.store_calls("/api/collection-items")[0].content)
    assert sent == {
        "collection_id": 1,
        "name": "List users",
        "url": "https://api.example.com/{{path}}",
        "method": "POST",
        "headers": {"A": "{{token}}"},
        "body": {"n": 1},
        "user_id": "u1",
    }


def test_save_collection_item_with_invalid_body_is_422(client, upstream):
    res = client.post(
        "/collection-items",
        json={"collection_id": 1, "name": "x", "url": "https://e.com", "body": "{bad", "user_id": "u1"},
    )

    assert res.status_code == 422
    assert res.json()["title"] == "Invalid JSON"
    assert upstream.store_calls("/api/collection-items") == []


def test_collections_list_and_create(client, upstream):
    assert client.get("/collections", headers={"user-id": "u1"}).json()[0]["name"] == "Smoke"

    res = client.post("/collections", json={"name": "Smoke", "user_id": "u1"})

    assert res.status_code == 201
    assert json.loads(upstream.store_calls("/api/collections")[-1].content) == {"name": "Smoke", "user_id": "u1"}


def test_store_outage_is_a_502(client, upstream):
    upstream.store_down = True

    res = client.get("/history", headers={"user-id": "u1"})

    assert res.status_code == 502
    assert res.json() == {"detail": "Store unavailable: list_history"}
