""" Test cases for file-related API endpoints """

import io
import uuid

from fastapi.testclient import TestClient

from api.files.hashing import compute_hash


def _upload(client: TestClient, content: bytes, filename: str = "hello.txt") -> str:
    response = client.post(
        "/api/files/upload-single",
        files={"file": (filename, content, "text/plain")},
    )
    assert response.status_code == 200
    return response.json()


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    response = client.get("/ping")
    assert response.status_code == 200


def test_upload_single(client: TestClient):
    file_id = _upload(client, b"hello")
    uuid.UUID(file_id)

    response = client.get(f"/api/files/{file_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == file_id
    assert data["name"] == "hello.txt"
    assert data["links_count"] == 1
    assert data["hash"] == compute_hash(io.BytesIO(b"hello"))


def test_upload_single_duplicate(client: TestClient):
    first_id = _upload(client, b"hello", "a.txt")
    second_id = _upload(client, b"hello", "b.txt")

    assert first_id == second_id
    assert client.get(f"/api/files/{first_id}").json()["links_count"] == 2


def test_upload_multiple(client: TestClient):
    response = client.post(
        "/api/files/upload-multiple",
        files=[
            ("files", ("a.txt", b"one", "text/plain")),
            ("files", ("b.txt", b"two", "text/plain")),
            ("files", ("c.txt", b"one", "text/plain")),
        ],
    )
    assert response.status_code == 200
    ids = response.json()
    assert len(ids) == 2
    assert client.get(f"/api/files/{ids[0]}").json()["links_count"] == 2


def test_get_id_by_hash(client: TestClient):
    file_id = _upload(client, b"hello")
    file_hash = compute_hash(io.BytesIO(b"hello"))

    response = client.get(f"/api/files/get-id-by-hash/{file_hash}")
    assert response.status_code == 200
    assert response.json() == file_id


def test_get_id_by_hash_not_found(client: TestClient):
    response = client.get("/api/files/get-id-by-hash/unknown")
    assert response.status_code == 404


def test_get_file_not_found(client: TestClient):
    response = client.get(f"/api/files/{uuid.uuid4()}")
    assert response.status_code == 404


def test_download(client: TestClient):
    file_id = _upload(client, b"hello", "greeting.txt")

    response = client.get(f"/api/files/{file_id}/download")
    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"] == "application/octet-stream"
    assert "greeting.txt" in response.headers["content-disposition"]


def test_download_not_found(client: TestClient):
    response = client.get(f"/api/files/{uuid.uuid4()}/download")
    assert response.status_code == 404


def test_download_missing_blob(client: TestClient, blob_store):
    file_id = _upload(client, b"hello")
    path = client.get(f"/api/files/{file_id}").json()["path"]
    blob_store.delete(path)

    response = client.get(f"/api/files/{file_id}/download")
    assert response.status_code == 404


def test_increase_links_count(client: TestClient):
    file_id = _upload(client, b"hello")

    response = client.post("/api/files/increase-links-count", json=file_id)
    assert response.status_code == 200
    assert client.get(f"/api/files/{file_id}").json()["links_count"] == 2


def test_increase_links_count_not_found(client: TestClient):
    response = client.post("/api/files/increase-links-count", json=str(uuid.uuid4()))
    assert response.status_code == 404


def test_decrease_links_count(client: TestClient, blob_store):
    file_id = _upload(client, b"hello")
    _upload(client, b"hello")

    response = client.post("/api/files/decrease-links-count", json=file_id)
    assert response.status_code == 200
    data = client.get(f"/api/files/{file_id}").json()
    assert data["links_count"] == 1
    assert blob_store.exists(data["path"])

    response = client.post("/api/files/decrease-links-count", json=file_id)
    assert response.status_code == 200
    assert client.get(f"/api/files/{file_id}").status_code == 404
    assert not blob_store.exists(data["path"])

    # Releasing again is a protocol violation on a record that is gone
    response = client.post("/api/files/decrease-links-count", json=file_id)
    assert response.status_code == 404


def test_decrease_links_count_conflict(client: TestClient, repository):
    file_id = uuid.uuid4()
    repository.insert(file_id, "stuck.txt", f"{file_id.hex[:2]}/{file_id.hex}", "stuck", 0)

    response = client.post("/api/files/decrease-links-count", json=str(file_id))
    assert response.status_code == 409


def test_decrease_links_count_invalid_id(client: TestClient):
    response = client.post("/api/files/decrease-links-count", json="not-a-uuid")
    assert response.status_code == 422
