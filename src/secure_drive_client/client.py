import logging
from uuid import UUID
from typing import Optional, List

from sqlalchemy.ext.asyncio import AsyncEngine

from secure_drive_client.crypto.cipher import CipherEngine, EncryptedPayload
from secure_drive_client.repositories import (FileRepository,
                                            MediaMetaRepository,
                                            PermissionRepository,
                                            ShareRepository,
                                            UserRepository,
                                            )
from secure_drive_client.db.files.access_grant_orm import WRITE
from secure_drive_client.pipelines import UploadPipeline, ReadPipeline, thumbnail_key
from secure_drive_client.models import (StoredFileInDB, FileListItem, DownloadResult,
                                        AudioMetadataIn, AudioMetadataInDB, VideoMetadataInDB, UserInDB)
from secure_drive_client.exceptions import (AccessDeniedError, BlobNotFoundError, DatabaseError, FileNotFoundInDriveError,
                                            MinioError, NotFoundError)

logger = logging.getLogger(__name__)

class DriveClient:
    """
    Единая точка доступа для бизнес-логики диска.

    Если в операцию чтения/записи передан user_id, проверяется grant пользователя
    (для записи нужен 'write'). Без user_id проверка не выполняется: так вызывают
    внутренние сервисы, у которых своя авторизация.
    """

    def __init__(
        self,
        cipher: CipherEngine,
        blob_store,
        file_repo: FileRepository,
        permission_repo: PermissionRepository,
        media_repo: MediaMetaRepository,
        share_repo: ShareRepository,
        user_repo: UserRepository,
        upload_pipeline: UploadPipeline,
        read_pipeline: ReadPipeline,
        engine: Optional[AsyncEngine] = None,
    ):
        self.cipher = cipher
        self.blobs = blob_store
        self.file_repo = file_repo
        self.permission_repo = permission_repo
        self.media_repo = media_repo
        self.share_repo = share_repo
        self.user_repo = user_repo
        self.upload_pipeline = upload_pipeline
        self.read_pipeline = read_pipeline
        self._engine = engine

    async def aclose(self):
        """Дожидается фоновых задач и закрывает пул соединений."""
        await self.upload_pipeline.wait_for_background()
        if self._engine is not None:
            await self._engine.dispose()

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность внешних сервисов (PostgreSQL, MinIO).
        """
        statuses = {}
        try:
            await self.file_repo.check_connection()
            statuses["postgres"] = "ok"
        except DatabaseError as e:
            statuses["postgres"] = f"failed: {e}"

        try:
            await self.blobs.check_connection()
            statuses["minio"] = "ok"
        except MinioError as e:
            statuses["minio"] = f"failed: {e}"

        return statuses

    # ――― cipher ――― #

    def encrypt(self, plaintext: str) -> EncryptedPayload:
        return self.cipher.encrypt(plaintext)

    def decrypt(self, payload: EncryptedPayload) -> str:
        return self.cipher.decrypt(payload)

    # ――― access ――― #

    async def _get_file(self, file_id: UUID) -> StoredFileInDB:
        stored = await self.file_repo.get(file_id)
        if stored is None:
            raise FileNotFoundInDriveError(f"File with id {file_id} not found.")
        return stored

    async def _authorize(self, file_id: UUID, user_id: Optional[UUID], need_write: bool = False) -> StoredFileInDB:
        stored = await self._get_file(file_id)
        if user_id is None:
            return stored
        permission = await self.permission_repo.get_permission(file_id, user_id)
        if permission is None or (need_write and permission != WRITE):
            level = "write" if need_write else "read"
            raise AccessDeniedError(f"User {user_id} has no {level} access to file {file_id}")
        return stored

    async def _require_owner(self, file_id: UUID, user_id: UUID) -> StoredFileInDB:
        stored = await self._get_file(file_id)
        if stored.owner_id != user_id:
            raise AccessDeniedError(f"User {user_id} does not own file {file_id}")
        return stored

    # ――― atomic high-level ops ――― #

    async def handle_upload(self, file_bytes: bytes, declared_kind: str, original_name: str, owner_id: UUID) -> StoredFileInDB:
        return await self.upload_pipeline.run(file_bytes, declared_kind, original_name, owner_id)

    async def handle_access_check(self, file_id: UUID, user_id: UUID) -> StoredFileInDB:
        """Проверяет, что у пользователя есть хоть какой-то доступ к файлу."""
        return await self._authorize(file_id, user_id)

    async def handle_content_read(self, file_id: UUID, user_id: Optional[UUID] = None) -> str:
        stored = await self._authorize(file_id, user_id)
        return await self.read_pipeline.read_content(file_id, stored=stored)

    async def handle_content_write(
        self,
        file_id: UUID,
        plaintext: str,
        user_id: Optional[UUID] = None,
        expected_version: Optional[int] = None,
    ) -> StoredFileInDB:
        stored = await self._authorize(file_id, user_id, need_write=True)
        return await self.read_pipeline.write_content(file_id, plaintext, expected_version, stored=stored)

    async def handle_download(self, file_id: UUID, user_id: Optional[UUID] = None) -> DownloadResult:
        stored = await self._authorize(file_id, user_id)
        return await self.read_pipeline.download(file_id, stored=stored)

    async def list_files(self, user_id: UUID) -> List[FileListItem]:
        return await self.file_repo.list_for_user(user_id)

    async def delete_file(self, file_id: UUID, user_id: UUID) -> str:
        """
        Владелец удаляет файл целиком (blob, запись, каскадом метаданные и grant'ы).
        Не владелец с grant'ом только отзывает свой доступ.
        Возвращает 'deleted' или 'revoked'.
        """
        stored = await self._get_file(file_id)
        if stored.owner_id == user_id:
            try:
                await self.blobs.remove_object(stored.storage_path)
            except BlobNotFoundError:
                logger.warning(f"Blob of file {file_id} already missing, deleting record anyway")
            if self.upload_pipeline.is_video(stored.kind):
                try:
                    await self.blobs.remove_object(thumbnail_key(file_id))
                except MinioError as e:
                    logger.warning(f"Thumbnail of video {file_id} not removed: {e}")
            await self.file_repo.delete(file_id)
            logger.info(f"File {file_id} deleted permanently by owner {user_id}")
            return "deleted"

        if await self.permission_repo.revoke_permission(file_id, user_id):
            logger.info(f"User {user_id} revoked own access to file {file_id}")
            return "revoked"
        raise AccessDeniedError(f"User {user_id} cannot delete file {file_id} or revoke access")

######################## MEDIA

    async def save_audio_metadata(self, file_id: UUID, owner_id: UUID, meta: AudioMetadataIn) -> AudioMetadataInDB:
        """Создаёт или перезаписывает метаданные аудио. Только владелец."""
        await self._require_owner(file_id, owner_id)
        return await self.media_repo.upsert_audio(file_id, meta)

    async def get_audio_metadata(self, file_id: UUID) -> Optional[AudioMetadataInDB]:
        return await self.media_repo.get_audio(file_id)

    async def get_video_metadata(self, file_id: UUID) -> Optional[VideoMetadataInDB]:
        return await self.media_repo.get_video(file_id)

    async def wait_for_background_tasks(self):
        await self.upload_pipeline.wait_for_background()

######################## SHARING

    async def share_file(self, file_id: UUID, owner_id: UUID) -> str:
        """Возвращает share-токен файла, создавая его при первом запросе. Только владелец."""
        await self._require_owner(file_id, owner_id)
        return await self.share_repo.get_or_create_token(file_id)

    async def join_by_token(self, token: str, user_id: UUID) -> UUID:
        """Погашает токен: выдаёт пользователю grant 'write'. Повторно - GrantExistsError."""
        file_id = await self.share_repo.find_file_id(token)
        if file_id is None:
            raise NotFoundError("Invalid or expired token")
        await self.permission_repo.grant_permission(file_id, user_id, WRITE)
        return file_id

######################## USERS

    async def create_user(self, email: str, plain_password: str, name: str) -> UserInDB:
        return await self.user_repo.create_user(email, plain_password, name)

    async def get_user_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        return await self.user_repo.get_by_id(user_id)
