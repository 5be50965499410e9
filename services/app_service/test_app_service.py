"""Tests for the App Service HTTP endpoints."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from services.app_service import main
from services.post_api.client import PostApiClient
from shared.models import ApiErrorKind, ApiResult, Post


@pytest.fixture
def mock_api_client():
    return AsyncMock(spec=PostApiClient)


@pytest.fixture
def online():
    return {"value": True}


@pytest.fixture
def client(tmp_path, monkeypatch, mock_api_client, online):
    """Start the app against a temporary database with a mocked API client."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'posts.db'}")

    with TestClient(main.app) as test_client:
        main.coordinator.api_client = mock_api_client
        main.coordinator.is_online = lambda: online["value"]
        yield test_client


def seed(*posts):
    main.db_ops.bulk_upsert_posts(list(posts))


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["dependencies"]["database"] == "up"


def test_load_online_returns_remote_posts(client, mock_api_client):
    mock_api_client.fetch_posts.return_value = ApiResult.success(
        [Post(id=1, user_id=1, title="T", body="B")]
    )

    response = client.get("/posts")

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "remote"
    assert data["offline"] is False
    assert data["posts"] == [
        {"id": 1, "user_id": 1, "title": "T", "body": "B", "is_favorite": False}
    ]


def test_load_offline_returns_cached_posts(client, mock_api_client, online):
    online["value"] = False
    seed(Post(id=1, user_id=1, title="A", body="B"), Post(id=2, user_id=1, title="C", body="D"))

    response = client.get("/posts")

    data = response.json()
    assert data["offline"] is True
    assert data["notice"] is None
    assert [post["id"] for post in data["posts"]] == [2, 1]
    mock_api_client.fetch_posts.assert_not_called()


def test_refresh_offline_has_notice(client, online):
    online["value"] = False

    data = client.post("/posts/refresh").json()

    assert data["offline"] is True
    assert data["notice"] == "Network unavailable"


def test_refresh_server_error_falls_back(client, mock_api_client):
    seed(Post(id=3, user_id=1, title="Cached", body="B", is_favorite=True))
    mock_api_client.fetch_posts.return_value = ApiResult.failure(
        ApiErrorKind.HTTP_STATUS, "Server error: 500", status_code=500
    )

    data = client.post("/posts/refresh").json()

    assert data["source"] == "local"
    assert data["offline"] is False
    assert data["notice"] == "Server error: 500"
    assert data["error"] == {"kind": "http_status", "message": "Server error: 500", "status_code": 500}
    assert data["posts"][0]["is_favorite"] is True


def test_create_edit_and_delete_post(client):
    response = client.post("/posts", json={"title": "Hello", "body": "World", "user_id": 2})
    assert response.status_code == 201
    created = response.json()
    assert created["id"] == 1000

    response = client.put(f"/posts/{created['id']}", json={"title": "Hi", "body": "There", "user_id": 2})
    assert response.status_code == 200
    assert client.get(f"/posts/{created['id']}").json()["title"] == "Hi"

    assert client.delete(f"/posts/{created['id']}").json()["deleted"] == 1
    assert client.delete(f"/posts/{created['id']}").json()["deleted"] == 0


def test_edit_without_owner_keeps_favorite(client):
    seed(Post(id=7, user_id=3, title="Old", body="Old", is_favorite=True))

    response = client.put("/posts/7", json={"title": "New", "body": "B"})

    assert response.status_code == 200
    assert response.json() == {"id": 7, "user_id": 3, "title": "New", "body": "B", "is_favorite": True}
    assert main.db_ops.get_post(7) == Post(id=7, user_id=3, title="New", body="B", is_favorite=True)


def test_store_reads_run_in_worker_threads(client):
    with patch("services.app_service.main.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
        assert client.get("/health").status_code == 200
        assert client.get("/session").status_code == 200
        assert client.get("/preferences/theme").status_code == 200

    offloaded = [call.args[0] for call in to_thread.call_args_list]
    assert main._check_database in offloaded
    assert main._session_state in offloaded
    assert main.preferences.get_theme in offloaded


def test_create_post_validation_error(client):
    response = client.post("/posts", json={"title": "", "body": "World"})

    assert response.status_code == 400
    assert "title" in response.json()["errors"]


def test_get_unknown_post_offline(client, online):
    online["value"] = False

    response = client.get("/posts/12345")

    assert response.status_code == 404


def test_edit_unknown_post(client):
    response = client.put("/posts/12345", json={"title": "T", "body": "B"})

    assert response.status_code == 404


def test_favorites(client):
    seed(Post(id=1, user_id=1, title="A", body="B"), Post(id=2, user_id=1, title="C", body="D"))

    response = client.put("/posts/2/favorite", json={})
    assert response.json()["is_favorite"] is True

    favorites = client.get("/posts/favorites").json()
    assert [post["id"] for post in favorites] == [2]

    client.put("/posts/2/favorite", json={"is_favorite": False})
    assert client.get("/posts/favorites").json() == []


def test_register_login_logout(client):
    response = client.post(
        "/auth/register",
        json={"username": "alice", "password": "pass1", "confirm_password": "pass1"}
    )
    assert response.status_code == 201

    duplicate = client.post(
        "/auth/register",
        json={"username": "alice", "password": "other", "confirm_password": "other"}
    )
    assert duplicate.status_code == 400

    bad_login = client.post("/auth/login", json={"username": "alice", "password": "nope"})
    assert bad_login.status_code == 401

    session = client.post("/auth/login", json={"username": "alice", "password": "pass1"}).json()
    assert session["logged_in"] is True
    assert session["username"] == "alice"

    session = client.post("/auth/logout").json()
    assert session["logged_in"] is False
    assert client.get("/session").json()["username"] == ""


def test_theme(client):
    assert client.get("/preferences/theme").json() == {"theme": 0, "name": "light"}

    response = client.put("/preferences/theme", json={"theme": 1})
    assert response.json() == {"theme": 1, "name": "dark"}

    assert client.put("/preferences/theme", json={"theme": 7}).status_code == 400


def test_store_fault_returns_500(client, online, monkeypatch):
    online["value"] = False

    def broken():
        raise RuntimeError("disk I/O error")

    monkeypatch.setattr(main.db_ops, "list_posts", broken)

    response = client.get("/posts")

    assert response.status_code == 500
    assert response.json()["error"] == "Internal server error"
