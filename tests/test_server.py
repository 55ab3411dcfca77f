from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from secure_drive_client.server.auth import create_access_token, get_drive_client
from secure_drive_client.server.main import create_app

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def api(drive):
    app = create_app()
    app.dependency_overrides[get_drive_client] = lambda: drive
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


async def test_upload_read_write_roundtrip(api, owner):
    # --- upload ---
    resp = await api.post(
        "/files/upload",
        files={"file": ("note.txt", b"hello-123", "text/plain")},
        headers=_auth(owner),
    )
    assert resp.status_code == 200, resp.text
    file_id = resp.json()["id"]
    assert resp.json()["size"] == 9

    # --- read ---
    resp = await api.get(f"/files/{file_id}/content", headers=_auth(owner))
    assert resp.status_code == 200
    assert resp.json()["content"] == "hello-123"

    # --- write с проверкой версии ---
    resp = await api.put(
        f"/files/{file_id}/content",
        json={"content": "updated", "expected_version": 1},
        headers=_auth(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["version"] == 2

    resp = await api.put(
        f"/files/{file_id}/content",
        json={"content": "stale", "expected_version": 1},
        headers=_auth(owner),
    )
    assert resp.status_code == 409

    # --- download ---
    resp = await api.get(f"/files/{file_id}/download", headers=_auth(owner))
    assert resp.status_code == 200
    assert resp.content == b"updated"
    assert resp.headers["content-type"].startswith("text/plain")


async def test_error_mapping(api, drive, owner, stranger, blob_store):
    stored = await drive.handle_upload(b"secret", "text/plain", "s.txt", owner.id)

    resp = await api.get(f"/files/{stored.id}/content", headers=_auth(stranger))
    assert resp.status_code == 403

    resp = await api.get(f"/files/{uuid4()}/content", headers=_auth(owner))
    assert resp.status_code == 404

    blob_store.objects[stored.storage_path] = b"AAAAAAAA"
    resp = await api.get(f"/files/{stored.id}/content", headers=_auth(owner))
    assert resp.status_code == 500
    assert resp.json()["detail"] == "An internal error occurred."


async def test_requires_token(api):
    resp = await api.get("/files")
    assert resp.status_code == 401

    resp = await api.get("/files", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_share_join_list_delete(api, owner, stranger):
    resp = await api.post("/files/upload", files={"file": ("a.txt", b"a", "text/plain")}, headers=_auth(owner))
    file_id = resp.json()["id"]

    token = (await api.post(f"/files/{file_id}/share", headers=_auth(owner))).json()["token"]
    resp = await api.post("/files/join", json={"token": token}, headers=_auth(stranger))
    assert resp.status_code == 200
    assert resp.json()["file_id"] == file_id

    resp = await api.post("/files/join", json={"token": token}, headers=_auth(stranger))
    assert resp.status_code == 403

    listed = (await api.get("/files", headers=_auth(stranger))).json()
    assert [item["id"] for item in listed] == [file_id]
    assert listed[0]["is_shared"] is True

    resp = await api.delete(f"/files/{file_id}", headers=_auth(stranger))
    assert resp.json() == {"result": "revoked"}
    resp = await api.delete(f"/files/{file_id}", headers=_auth(owner))
    assert resp.json() == {"result": "deleted"}


async def test_music_metadata_routes(api, drive, owner):
    stored = await drive.handle_upload(b"ID3", "audio/mpeg", "s.mp3", owner.id)

    resp = await api.get(f"/files/{stored.id}/music-metadata", headers=_auth(owner))
    assert resp.json()["title"] == "Song A"

    resp = await api.put(
        f"/files/{stored.id}/music-metadata",
        json={"title": "New", "artist": "Someone"},
        headers=_auth(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["artist"] == "Someone"


async def test_text_edit_of_binary_file_is_415(api, drive, owner, blob_store):
    stored = await drive.handle_upload(b"\x89PNG", "image/png", "p.png", owner.id)

    resp = await api.put(f"/files/{stored.id}/content", json={"content": "x"}, headers=_auth(owner))

    assert resp.status_code == 415
    assert blob_store.objects[stored.storage_path] == b"\x89PNG"
