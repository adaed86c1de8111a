import pytest
from fastapi.testclient import TestClient

from api_server import create_app
from tests.fake_remote import InMemoryRemoteStore, seed_rows


@pytest.fixture
def api_remote():
    remote = InMemoryRemoteStore()
    seed_rows(remote)
    return remote


@pytest.fixture
def client(api_remote):
    with TestClient(create_app(lambda: api_remote)) as test_client:
        yield test_client


def test_list_users_newest_first(client):
    response = client.get("/users")
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == ["u2", "u1"]
    assert "dateAdded" in response.json()[0]


def test_create_user(client, api_remote):
    response = client.post("/users", json={"name": "Tom Tech", "email": "tom@farm.com",
                                           "role": "technician", "status": "active"})
    assert response.status_code == 201
    body = response.json()
    assert body["permissions"] == []
    assert body["avatar"].endswith("seed=Tom%20Tech")
    assert any(row["email"] == "tom@farm.com" for row in api_remote.tables["users"])


def test_create_user_missing_fields(client):
    response = client.post("/users", json={"name": "No Email", "role": "worker", "status": "active"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}


def test_create_user_invalid_role(client):
    response = client.post("/users", json={"name": "X", "email": "x@farm.com", "role": "boss", "status": "active"})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_record"


def test_update_user(client):
    response = client.put("/users", json={"id": "u2", "status": "inactive"})
    assert response.status_code == 200
    assert response.json()["status"] == "inactive"


def test_update_user_requires_id(client):
    response = client.put("/users", json={"status": "inactive"})
    assert response.status_code == 400


def test_update_unknown_user(client):
    response = client.put("/users", json={"id": "ghost", "status": "inactive"})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_delete_user(client, api_remote):
    response = client.delete("/users", params={"id": "u2"})
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert [row["id"] for row in api_remote.tables["users"]] == ["u1"]

    assert client.delete("/users", params={"id": "u2"}).status_code == 404
    assert client.delete("/users").status_code == 400


def test_dashboard_snapshot(client):
    body = client.get("/dashboard").json()
    assert body["status"] == "ready"
    assert len(body["fields"]) == 2
    assert body["weatherData"]["condition"] == "sunny"


def test_notification_routes(client, api_remote):
    response = client.post("/notifications/n1/read")
    assert response.status_code == 200
    assert response.json()["read"] is True
    assert client.post("/notifications/missing/read").status_code == 404

    response = client.post("/notifications/clear", params={"user_id": "u1"})
    assert response.json() == {"success": True}
    assert all(row["read"] for row in api_remote.tables["notifications"] if row["user_id"] == "u1")


def test_lifespan_closes_store_and_remote(api_remote):
    with TestClient(create_app(lambda: api_remote)):
        assert len(api_remote.subscriptions) == 9
    assert api_remote.subscriptions == []
    assert api_remote.closed


def test_list_users_serves_the_store_slice(api_remote):
    api_remote.tables["users"].append({"id": "u9", "name": "Root", "email": "root@farm.com", "role": "admin"})
    with TestClient(create_app(lambda: api_remote)) as client:
        response = client.get("/users")
        assert response.status_code == 200
        assert response.json() == []

        body = client.get("/dashboard").json()
        assert body["status"] == "error"
        assert body["error"].startswith("Stored row in User is invalid")
