import logging
from typing import Optional
from uuid import UUID

from secure_drive_client.config import MediaConfig
from secure_drive_client.crypto.cipher import CipherEngine, EncryptedPayload
from secure_drive_client.exceptions import (
    ConflictError,
    DecryptionFailed,
    FileNotFoundInDriveError,
    IntegrityError,
    UnsupportedKindError,
)
from secure_drive_client.models.file import DownloadResult, StoredFileInDB
from secure_drive_client.repositories.pg_repositoryFile import FileRepository

logger = logging.getLogger(__name__)


class ReadPipeline:
    """
    Чтение и перезапись содержимого:
    - read_content: для редактора, расшифровывает по флагу is_encrypted;
    - download: расшифровывает только text/plain, бинарные типы отдаются как есть;
    - write_content: только для text/plain, каждое сохранение перешифровывается со свежим nonce.
    """

    def __init__(self, cipher: CipherEngine, blob_store, file_repo: FileRepository, settings: MediaConfig):
        self._cipher = cipher
        self._blobs = blob_store
        self._files = file_repo
        self._settings = settings

    async def _load(self, file_id: UUID) -> StoredFileInDB:
        stored = await self._files.get(file_id)
        if stored is None:
            raise FileNotFoundInDriveError(f"File {file_id} not found.")
        return stored

    def _decrypt(self, stored: StoredFileInDB, blob: bytes) -> str:
        try:
            ciphertext = blob.decode("ascii")
        except UnicodeDecodeError as e:
            logger.error(f"Stored ciphertext of file {stored.id} is not ASCII")
            raise DecryptionFailed(f"Stored content of file {stored.id} is corrupted") from e
        payload = EncryptedPayload(
            nonce=stored.nonce,
            ciphertext=ciphertext,
            tag=stored.auth_tag,
            encoding=stored.cipher_encoding,
        )
        try:
            return self._cipher.decrypt(payload)
        except IntegrityError as e:
            logger.error(
                f"Decryption failed for file {stored.id} (storage_path={stored.storage_path}, "
                f"encoding={stored.cipher_encoding}, blob_len={len(blob)}): {e}"
            )
            raise DecryptionFailed(f"Decryption failed for file {stored.id}") from e

    @staticmethod
    def _has_cipher_fields(stored: StoredFileInDB) -> bool:
        return bool(stored.is_encrypted and stored.nonce and stored.auth_tag)

    async def read_content(self, file_id: UUID, stored: Optional[StoredFileInDB] = None) -> str:
        stored = stored or await self._load(file_id)
        blob = await self._blobs.get_object(stored.storage_path)
        if self._has_cipher_fields(stored):
            return self._decrypt(stored, blob)
        # не помечен как зашифрованный: отдаём текст как есть, без подмены байтов
        try:
            return blob.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedKindError(f"Content of file {stored.id} ({stored.kind}) is not UTF-8 text") from e

    async def download(self, file_id: UUID, stored: Optional[StoredFileInDB] = None) -> DownloadResult:
        stored = stored or await self._load(file_id)
        blob = await self._blobs.get_object(stored.storage_path)
        # политика по типу, а не по флагу: бинарные данные никогда не идут через текстовый decrypt
        if stored.kind == self._settings.plain_text_kind and self._has_cipher_fields(stored):
            content = self._decrypt(stored, blob).encode("utf-8")
        else:
            content = blob
        return DownloadResult(content=content, content_type=stored.kind, file_name=stored.name)

    async def write_content(
        self,
        file_id: UUID,
        plaintext: str,
        expected_version: Optional[int] = None,
        stored: Optional[StoredFileInDB] = None,
    ) -> StoredFileInDB:
        stored = stored or await self._load(file_id)
        # шифруется только text/plain: бинарный blob затирать шифртекстом нельзя
        if stored.kind != self._settings.plain_text_kind:
            raise UnsupportedKindError(
                f"File {file_id} of kind '{stored.kind}' cannot be edited as text"
            )
        if expected_version is not None and stored.version != expected_version:
            raise ConflictError(
                f"File {file_id} is at version {stored.version}, expected {expected_version}"
            )
        payload = self._cipher.encrypt(plaintext)
        logger.debug("Re-encrypting file %s (nonce=%s)", file_id, payload.nonce)
        await self._blobs.update_object(stored.storage_path, payload.ciphertext.encode("ascii"), content_type=stored.kind)
        updated = await self._files.update_content_fields(file_id, payload, expected_version)
        logger.info(f"Content of file {file_id} updated, version {updated.version}")
        return updated
