import base64
from uuid import uuid4

import pytest

from secure_drive_client import DriveClient
from secure_drive_client.crypto import CipherEngine
from secure_drive_client.db import StoredFileORM, AccessGrantORM
from secure_drive_client.exceptions import (
    ConflictError,
    DecryptionFailed,
    FileNotFoundInDriveError,
    UnsupportedKindError,
)

from drive_fakes import TEST_KEY_HEX

pytestmark = pytest.mark.asyncio


async def test_rewrite_uses_fresh_nonce(drive: DriveClient, owner, blob_store):
    """Каждое сохранение перешифровывается: новый nonce, новый тег, читается последний текст."""
    stored = await drive.handle_upload(b"v0", "text/plain", "doc.txt", owner.id)

    first = await drive.handle_content_write(stored.id, "version one", user_id=owner.id)
    second = await drive.handle_content_write(stored.id, "version two", user_id=owner.id)

    assert len({stored.nonce, first.nonce, second.nonce}) == 3
    assert first.auth_tag != second.auth_tag
    assert second.version == first.version + 1
    assert b"version two" not in blob_store.objects[stored.storage_path]
    assert await drive.handle_content_read(stored.id) == "version two"


async def test_expected_version_conflict(drive: DriveClient, owner):
    stored = await drive.handle_upload(b"base", "text/plain", "doc.txt", owner.id)
    assert stored.version == 1

    updated = await drive.handle_content_write(stored.id, "mine", expected_version=1)
    assert updated.version == 2

    with pytest.raises(ConflictError):
        await drive.handle_content_write(stored.id, "stale", expected_version=1)
    assert await drive.handle_content_read(stored.id) == "mine"


async def test_download_decrypts_plain_text(drive: DriveClient, owner):
    stored = await drive.handle_upload("Привет".encode(), "text/plain", "hi.txt", owner.id)

    result = await drive.handle_download(stored.id, user_id=owner.id)

    assert result.content == "Привет".encode()
    assert result.content_type == "text/plain"
    assert result.file_name == "hi.txt"


async def test_download_binary_passes_through(drive: DriveClient, owner):
    data = bytes(range(256))
    stored = await drive.handle_upload(data, "application/octet-stream", "raw.bin", owner.id)

    result = await drive.handle_download(stored.id)

    assert result.content == data


async def test_tampered_blob_fails_decryption(drive: DriveClient, owner, blob_store):
    stored = await drive.handle_upload(b"hello-123", "text/plain", "note.txt", owner.id)
    blob_store.objects[stored.storage_path] = b"AAAAAAAAAAAA"

    with pytest.raises(DecryptionFailed):
        await drive.handle_content_read(stored.id)
    with pytest.raises(DecryptionFailed):
        await drive.handle_download(stored.id)


async def test_non_ascii_blob_fails_decryption(drive: DriveClient, owner, blob_store):
    stored = await drive.handle_upload(b"hello-123", "text/plain", "note.txt", owner.id)
    blob_store.objects[stored.storage_path] = "шифр".encode()

    with pytest.raises(DecryptionFailed):
        await drive.handle_content_read(stored.id)


async def test_missing_file(drive: DriveClient):
    with pytest.raises(FileNotFoundInDriveError):
        await drive.handle_content_read(uuid4())


async def test_legacy_hex_record_is_readable(drive: DriveClient, owner, blob_store, session_factory):
    """
    Старая запись: nonce/tag в hex, cipher_encoding не задан.
    Кодировка определяется по содержимому поля.
    """
    # --- ARRANGE ---
    payload = CipherEngine.from_hex(TEST_KEY_HEX).encrypt("legacy text")
    blob_store.objects["legacy.txt"] = payload.ciphertext.encode("ascii")
    row = StoredFileORM(
        name="legacy.txt",
        kind="text/plain",
        size=len("legacy text"),
        storage_path="legacy.txt",
        nonce=base64.b64decode(payload.nonce).hex(),
        auth_tag=base64.b64decode(payload.tag).hex(),
        cipher_encoding=None,
        is_encrypted=True,
        owner_id=owner.id,
    )
    async with session_factory() as session:
        session.add(row)
        await session.flush()
        session.add(AccessGrantORM(user_id=owner.id, file_id=row.id, permission="write"))
        await session.commit()

    # --- ACT & ASSERT ---
    assert await drive.handle_content_read(row.id, user_id=owner.id) == "legacy text"

    # после перезаписи запись переходит на явный base64
    updated = await drive.handle_content_write(row.id, "rewritten", user_id=owner.id)
    assert updated.cipher_encoding == "base64"
    assert await drive.handle_content_read(row.id) == "rewritten"


async def test_unencrypted_row_is_read_as_text(drive: DriveClient, owner):
    stored = await drive.handle_upload(b"# title", "text/markdown", "readme.md", owner.id)
    assert await drive.handle_content_read(stored.id) == "# title"


async def test_text_write_on_binary_kind_is_rejected(drive: DriveClient, owner, blob_store):
    """Бинарный файл нельзя перезаписать как текст: blob и флаг шифрования не меняются."""
    png = b"\x89PNG\r\n\x1a\n\x00\x00"
    stored = await drive.handle_upload(png, "image/png", "pic.png", owner.id)

    with pytest.raises(UnsupportedKindError):
        await drive.handle_content_write(stored.id, "overwrite", user_id=owner.id)

    assert blob_store.objects[stored.storage_path] == png
    reloaded = await drive.file_repo.get(stored.id)
    assert reloaded.is_encrypted is False
    assert reloaded.version == 1
    assert (await drive.handle_download(stored.id)).content == png


async def test_binary_kind_with_stray_encrypted_flag_passes_through(drive: DriveClient, owner, blob_store, session_factory):
    """Флаг is_encrypted на бинарном файле не включает расшифровку при скачивании."""
    # --- ARRANGE ---
    data = b"\x00\x01\x02raw-bytes\xff"
    blob_store.objects["stray.bin"] = data
    row = StoredFileORM(
        name="stray.bin",
        kind="application/octet-stream",
        size=len(data),
        storage_path="stray.bin",
        nonce=base64.b64encode(b"\x00" * 12).decode(),
        auth_tag=base64.b64encode(b"\x00" * 16).decode(),
        cipher_encoding="base64",
        is_encrypted=True,
        owner_id=owner.id,
    )
    async with session_factory() as session:
        session.add(row)
        await session.commit()

    # --- ACT ---
    result = await drive.handle_download(row.id)

    # --- ASSERT ---
    assert result.content == data


async def test_non_utf8_unencrypted_content_is_not_rewritten(drive: DriveClient, owner):
    stored = await drive.handle_upload(b"\xff\xfe\x00binary", "image/png", "pic.png", owner.id)

    with pytest.raises(UnsupportedKindError):
        await drive.handle_content_read(stored.id)
