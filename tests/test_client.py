from uuid import uuid4

import pytest

from secure_drive_client import DriveClient
from secure_drive_client.exceptions import (
    AccessDeniedError,
    DatabaseError,
    FileNotFoundInDriveError,
    GrantExistsError,
    NotFoundError,
)
from secure_drive_client.models import AudioMetadataIn
from secure_drive_client.pipelines import thumbnail_key
from secure_drive_client.repositories.pg_repositoryShare import TOKEN_PREFIX

pytestmark = pytest.mark.asyncio


async def test_stranger_is_denied(drive: DriveClient, owner, stranger):
    stored = await drive.handle_upload(b"private", "text/plain", "p.txt", owner.id)

    with pytest.raises(AccessDeniedError):
        await drive.handle_content_read(stored.id, user_id=stranger.id)
    with pytest.raises(AccessDeniedError):
        await drive.handle_download(stored.id, user_id=stranger.id)
    with pytest.raises(AccessDeniedError):
        await drive.handle_content_write(stored.id, "mine now", user_id=stranger.id)


async def test_read_grant_cannot_write(drive: DriveClient, owner, stranger):
    stored = await drive.handle_upload(b"shared", "text/plain", "s.txt", owner.id)
    await drive.permission_repo.grant_permission(stored.id, stranger.id, "read")

    assert await drive.handle_content_read(stored.id, user_id=stranger.id) == "shared"
    with pytest.raises(AccessDeniedError):
        await drive.handle_content_write(stored.id, "edit", user_id=stranger.id)


async def test_list_files_includes_granted(drive: DriveClient, owner, stranger):
    own = await drive.handle_upload(b"1", "text/plain", "own.txt", owner.id)
    other = await drive.handle_upload(b"2", "text/plain", "other.txt", stranger.id)
    await drive.permission_repo.grant_permission(other.id, owner.id, "read")

    listed = {item.id: item for item in await drive.list_files(owner.id)}

    assert set(listed) == {own.id, other.id}
    assert listed[own.id].size == 1
    assert not listed[own.id].is_shared
    assert [item.id for item in await drive.list_files(stranger.id)] == [other.id]


async def test_owner_delete_removes_everything(drive: DriveClient, owner, blob_store):
    stored = await drive.handle_upload(b"bye", "text/plain", "bye.txt", owner.id)
    await drive.share_file(stored.id, owner.id)

    assert await drive.delete_file(stored.id, owner.id) == "deleted"

    assert stored.storage_path not in blob_store.objects
    assert await drive.list_files(owner.id) == []
    # grant и share-токен ушли каскадом
    assert await drive.permission_repo.get_permission(stored.id, owner.id) is None
    assert await drive.share_repo.get_token(stored.id) is None
    with pytest.raises(FileNotFoundInDriveError):
        await drive.handle_content_read(stored.id)


async def test_owner_delete_removes_video_thumbnail(drive: DriveClient, owner, blob_store):
    stored = await drive.handle_upload(b"movie", "video/mp4", "m.mp4", owner.id)
    await drive.wait_for_background_tasks()
    assert thumbnail_key(stored.id) in blob_store.objects

    await drive.delete_file(stored.id, owner.id)

    assert blob_store.objects == {}
    assert await drive.get_video_metadata(stored.id) is None


async def test_owner_delete_tolerates_missing_blob(drive: DriveClient, owner, blob_store):
    stored = await drive.handle_upload(b"x", "text/plain", "x.txt", owner.id)
    blob_store.objects.clear()

    assert await drive.delete_file(stored.id, owner.id) == "deleted"


async def test_non_owner_delete_revokes_own_grant(drive: DriveClient, owner, stranger, blob_store):
    stored = await drive.handle_upload(b"keep", "text/plain", "k.txt", owner.id)
    await drive.permission_repo.grant_permission(stored.id, stranger.id, "write")

    assert await drive.delete_file(stored.id, stranger.id) == "revoked"

    assert stored.storage_path in blob_store.objects
    assert await drive.list_files(stranger.id) == []
    assert await drive.handle_content_read(stored.id, user_id=owner.id) == "keep"


async def test_delete_without_grant_is_denied(drive: DriveClient, owner, stranger):
    stored = await drive.handle_upload(b"keep", "text/plain", "k.txt", owner.id)
    with pytest.raises(AccessDeniedError):
        await drive.delete_file(stored.id, stranger.id)


async def test_share_and_join(drive: DriveClient, owner, stranger):
    """Полный сценарий шаринга: токен владельца, вход по токену, повторный вход."""
    # --- ARRANGE ---
    stored = await drive.handle_upload(b"team notes", "text/plain", "team.txt", owner.id)

    # --- ACT ---
    token = await drive.share_file(stored.id, owner.id)

    # --- ASSERT ---
    assert token.startswith(TOKEN_PREFIX)
    assert len(token) == len(TOKEN_PREFIX) + 32
    assert await drive.share_file(stored.id, owner.id) == token
    assert (await drive.list_files(owner.id))[0].is_shared

    assert await drive.join_by_token(token, stranger.id) == stored.id
    assert await drive.permission_repo.get_permission(stored.id, stranger.id) == "write"
    await drive.handle_content_write(stored.id, "edited by stranger", user_id=stranger.id)
    assert await drive.handle_content_read(stored.id, user_id=owner.id) == "edited by stranger"

    with pytest.raises(GrantExistsError):
        await drive.join_by_token(token, stranger.id)


async def test_share_requires_owner(drive: DriveClient, owner, stranger):
    stored = await drive.handle_upload(b"x", "text/plain", "x.txt", owner.id)
    with pytest.raises(AccessDeniedError):
        await drive.share_file(stored.id, stranger.id)


async def test_join_unknown_token(drive: DriveClient, stranger):
    with pytest.raises(NotFoundError):
        await drive.join_by_token(f"{TOKEN_PREFIX}{'0' * 32}", stranger.id)


async def test_audio_metadata_upsert(drive: DriveClient, owner, stranger):
    stored = await drive.handle_upload(b"ID3", "audio/mpeg", "s.mp3", owner.id)

    saved = await drive.save_audio_metadata(
        stored.id, owner.id, AudioMetadataIn(title="Renamed", lyrics="la la la")
    )

    assert saved.title == "Renamed"
    assert saved.artist is None
    assert (await drive.get_audio_metadata(stored.id)).lyrics == "la la la"
    with pytest.raises(AccessDeniedError):
        await drive.save_audio_metadata(stored.id, stranger.id, AudioMetadataIn(title="Mine"))


async def test_unknown_file(drive: DriveClient, owner):
    with pytest.raises(FileNotFoundInDriveError):
        await drive.delete_file(uuid4(), owner.id)


async def test_check_connections(drive: DriveClient):
    assert await drive.check_connections() == {"postgres": "ok", "minio": "ok"}


async def test_encrypt_decrypt_facade(drive: DriveClient):
    payload = drive.encrypt("через фасад")
    assert drive.decrypt(payload) == "через фасад"


async def test_duplicate_email(drive: DriveClient, owner):
    with pytest.raises(DatabaseError):
        await drive.create_user("owner@example.com", "again", "Twin")
