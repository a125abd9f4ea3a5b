import json

from fastapi.testclient import TestClient

from thread_board.errors import StoreUnavailable
from thread_board.repository import ThreadRepository
from thread_board.storage.memory_blob_store import MemoryBlobStore
from thread_board.webapp import create_app, get_repository


def _delete(client: TestClient, url: str, body: dict):
    return client.request("DELETE", url, json=body)


def test_save_thread_creates_then_updates(client: TestClient) -> None:
    created = client.post("/api/threads", json={"id": "t1", "title": "Hello"})
    assert created.status_code == 201
    payload = created.json()
    assert payload["created"] is True
    assert payload["threadId"] == "t1"
    assert payload["thread"]["title"] == "Hello"
    assert payload["thread"]["posts"] == []

    updated = client.post("/api/threads", json={"threadId": "t1"})
    assert updated.status_code == 200
    assert updated.json()["created"] is False
    assert updated.json()["thread"]["title"] == "Hello"


def test_save_thread_requires_id(client: TestClient) -> None:
    response = client.post("/api/threads", json={"title": "orphan"})
    assert response.status_code == 400
    assert "threadId" in response.json()["error"]


def test_save_thread_rejects_bad_posts(client: TestClient) -> None:
    response = client.post("/api/threads", json={"id": "t1", "posts": [{"name": "x"}]})
    assert response.status_code == 400
    response = client.post("/api/threads", json={"id": "t1", "posts": "nope"})
    assert response.status_code == 400


def test_malformed_json_is_bad_request(client: TestClient) -> None:
    response = client.post(
        "/api/threads", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_get_thread(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "t1", "title": "Hello"})
    response = client.get("/api/threads/t1")
    assert response.status_code == 200
    assert response.json()["id"] == "t1"

    missing = client.get("/api/threads/nope")
    assert missing.status_code == 404
    assert missing.json()["threadId"] == "nope"


def test_save_post(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "t1"})
    response = client.post("/api/posts", json={"threadId": "t1", "content": "hello", "id": "p1"})
    assert response.status_code == 201
    payload = response.json()
    assert payload["postId"] == "p1"
    assert payload["post"]["name"] == "Anonymous"
    assert client.get("/api/threads/t1").json()["posts"][0]["content"] == "hello"


def test_save_post_with_id_as_thread_id(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "t1"})
    response = client.post("/api/posts", json={"id": "t1", "content": "hello", "name": "Yui"})
    assert response.status_code == 201
    assert response.json()["threadId"] == "t1"
    assert response.json()["postId"].startswith("post-")


def test_save_post_validation(client: TestClient) -> None:
    assert client.post("/api/posts", json={"threadId": "t1"}).status_code == 400
    assert client.post("/api/posts", json={"content": "hello"}).status_code == 400


def test_save_post_to_missing_thread(client: TestClient, sleeps) -> None:
    response = client.post("/api/posts", json={"threadId": "ghost", "content": "hello"})
    assert response.status_code == 404
    assert response.json()["threadId"] == "ghost"
    assert sleeps.delays == [3.0, 3.0]


def test_delete_post(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "t1"})
    client.post("/api/posts", json={"threadId": "t1", "content": "bye", "id": "p1"})

    response = _delete(client, "/api/posts", {"threadId": "t1", "postId": "p1"})
    assert response.status_code == 200
    assert response.json()["deletedPost"]["content"] == "bye"
    assert client.get("/api/threads/t1").json()["posts"] == []

    again = _delete(client, "/api/posts", {"threadId": "t1", "postId": "p1"})
    assert again.status_code == 404
    assert again.json()["postId"] == "p1"

    assert _delete(client, "/api/posts", {"threadId": "t1"}).status_code == 400
    assert _delete(client, "/api/posts", {"threadId": "nope", "postId": "p1"}).status_code == 404


def test_delete_thread(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "t1"})
    response = _delete(client, "/api/threads", {"threadId": "t1"})
    assert response.status_code == 200
    assert response.json() == {"message": "Thread deleted", "threadId": "t1"}

    assert _delete(client, "/api/threads", {"threadId": "t1"}).status_code == 404
    assert _delete(client, "/api/threads", {}).status_code == 400


def test_list_threads_newest_first(client: TestClient) -> None:
    client.post("/api/threads", json={"id": "a", "timestamp": "2023-01-01T00:00:00.000Z"})
    client.post("/api/threads", json={"id": "b", "timestamp": "2024-01-01T00:00:00.000Z"})
    response = client.get("/api/threads")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    assert [t["id"] for t in response.json()["threads"]] == ["b", "a"]


def test_wrong_method_lists_allowed_methods(client: TestClient) -> None:
    response = client.put("/api/posts", json={})
    assert response.status_code == 405
    assert response.json()["allowedMethods"] == ["DELETE", "POST"]
    assert response.headers["allow"] == "DELETE, POST"


def test_backup_post(client: TestClient, backup_store: MemoryBlobStore) -> None:
    response = client.post(
        "/api/backup/posts",
        json={"threadId": "t1", "post": {"id": "p1", "name": "Mio", "content": "saved"}},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["post"]["savedToBackup"] is True
    assert payload["backupInfo"]["containerName"] == "threads-backup"
    assert payload["backupInfo"]["blobName"] == "t1_backup.json"
    assert json.loads(backup_store.blobs["t1_backup.json"])["isBackup"] is True

    bad = client.post("/api/backup/posts", json={"threadId": "t1", "post": {"id": "p2"}})
    assert bad.status_code == 400
    assert client.post("/api/backup/posts", json={"threadId": "t1"}).status_code == 400


class DownStore(MemoryBlobStore):
    async def list_keys(self):
        raise StoreUnavailable("Blob list failed", detail="auth failed")
        yield  # pragma: no cover


def test_store_failure_is_server_error() -> None:
    app = create_app()
    app.dependency_overrides[get_repository] = lambda: ThreadRepository(DownStore())
    response = TestClient(app).get("/api/threads")
    assert response.status_code == 500
    assert response.json()["error"] == "Blob list failed"


def test_uninitialized_store_is_server_error() -> None:
    response = TestClient(create_app()).get("/api/threads")
    assert response.status_code == 500
    assert response.json()["error"] == "Thread store not initialized"
