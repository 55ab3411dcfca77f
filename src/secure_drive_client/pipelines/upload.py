import asyncio
import enum
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Set
from uuid import UUID, uuid4

from secure_drive_client.config import MediaConfig
from secure_drive_client.crypto.cipher import CipherEngine, EncryptedPayload
from secure_drive_client.db import StoredFileORM
from secure_drive_client.exceptions import (
    DatabaseError,
    IntegrityError,
    MetadataExtractionFailed,
    MinioError,
    UploadFailed,
)
from secure_drive_client.media.probe import VideoProber
from secure_drive_client.media.tags import TagParser, extract_audio_tags
from secure_drive_client.models.file import StoredFileInDB
from secure_drive_client.models.media import AudioMetadataIn, AudioTags, VideoMetadataInDB
from secure_drive_client.repositories.pg_repositoryFile import FileRepository
from secure_drive_client.repositories.pg_repositoryMediaMeta import MediaMetaRepository
from secure_drive_client.utils.io_async import read_file, remove_file, run_io_bound, write_file

logger = logging.getLogger(__name__)


class UploadState(str, enum.Enum):
    RECEIVED = "received"
    MAYBE_ENCRYPT = "maybe_encrypt"
    MAYBE_EXTRACT_METADATA = "maybe_extract_metadata"
    PERSIST_BLOB = "persist_blob"
    PERSIST_RECORD = "persist_record"
    MAYBE_PERSIST_METADATA = "maybe_persist_metadata"
    CLEANUP = "cleanup"
    DONE = "done"
    ABORT = "abort"


def thumbnail_key(file_id: UUID) -> str:
    return f"thumbnails/{file_id}.jpg"


class _UploadRun:
    """Состояние одной загрузки. Переходы строго линейные, ABORT достижим из любого шага."""

    def __init__(self, upload_id: UUID):
        self.upload_id = upload_id
        self.state = UploadState.RECEIVED

    def to(self, state: UploadState):
        logger.debug("upload %s: %s -> %s", self.upload_id, self.state.value, state.value)
        self.state = state


class UploadPipeline:
    """
    Конвейер загрузки одного файла:
    шифрование (только text/plain) -> теги аудио -> blob в хранилище ->
    запись о файле + grant владельца -> метаданные аудио -> удаление временного файла.
    Видео пробуется уже после ответа, в фоновой задаче.
    """

    def __init__(
        self,
        cipher: CipherEngine,
        blob_store,
        file_repo: FileRepository,
        media_repo: MediaMetaRepository,
        tag_parser: TagParser,
        video_prober: VideoProber,
        settings: MediaConfig,
    ):
        self._cipher = cipher
        self._blobs = blob_store
        self._files = file_repo
        self._media = media_repo
        self._tags = tag_parser
        self._prober = video_prober
        self._settings = settings
        self._temp_dir = Path(settings.temp_dir)
        # только чтобы фоновые задачи не собрал GC; никто их не ждёт
        self._background: Set[asyncio.Task] = set()

    # ――― policy ――― #

    def is_encryptable(self, declared_kind: str) -> bool:
        return declared_kind == self._settings.plain_text_kind

    def is_audio(self, declared_kind: str) -> bool:
        return declared_kind.startswith(self._settings.audio_prefix)

    def is_video(self, declared_kind: str) -> bool:
        return declared_kind.startswith(self._settings.video_prefix)

    # ――― main ――― #

    async def run(self, file_bytes: bytes, declared_kind: str, original_name: str, owner_id: UUID) -> StoredFileInDB:
        run = _UploadRun(uuid4())
        ext = Path(original_name).suffix
        temp_path = self._temp_dir / f"{run.upload_id.hex}{ext}"
        file_id = uuid4()
        storage_key = f"{uuid4().hex}{ext}"
        blob_stored = False
        logger.info(f"Uploading '{original_name}' ({declared_kind}, {len(file_bytes)} bytes) as upload {run.upload_id}")

        try:
            await write_file(temp_path, file_bytes)

            run.to(UploadState.MAYBE_ENCRYPT)
            payload: Optional[EncryptedPayload] = None
            if self.is_encryptable(declared_kind):
                payload = await self._encrypt_in_place(temp_path)

            run.to(UploadState.MAYBE_EXTRACT_METADATA)
            audio_tags: Optional[AudioTags] = None
            if self.is_audio(declared_kind):
                audio_tags = await self._extract_audio(temp_path, declared_kind, payload)

            run.to(UploadState.PERSIST_BLOB)
            blob = await read_file(temp_path)
            await self._blobs.put_object(storage_key, blob, content_type=declared_kind)
            blob_stored = True

            run.to(UploadState.PERSIST_RECORD)
            stored = await self._files.create_with_owner_grant(StoredFileORM(
                id=file_id,
                name=original_name,
                kind=declared_kind,
                # размер до шифрования
                size=len(file_bytes),
                storage_path=storage_key,
                nonce=payload.nonce if payload else None,
                auth_tag=payload.tag if payload else None,
                cipher_encoding=payload.encoding if payload else None,
                is_encrypted=payload is not None,
                owner_id=owner_id,
            ))
        except Exception as e:
            run.to(UploadState.ABORT)
            logger.error(f"Upload {run.upload_id} of '{original_name}' failed: {e}")
            if blob_stored:
                await self._remove_orphan_blob(storage_key)
            await self._cleanup(temp_path)
            raise UploadFailed(f"Failed to upload '{original_name}': {e}") from e

        # запись уже закоммичена: что бы ни случилось дальше, временный файл удаляем
        try:
            run.to(UploadState.MAYBE_PERSIST_METADATA)
            if audio_tags is not None:
                await self._persist_audio(stored.id, audio_tags)
            if self.is_video(declared_kind):
                self._spawn_video_tail(stored.id, original_name, file_bytes, ext)
        finally:
            run.to(UploadState.CLEANUP)
            await self._cleanup(temp_path)
        run.to(UploadState.DONE)
        logger.info(f"Upload {run.upload_id} done: file {stored.id}, encrypted={stored.is_encrypted}")
        return stored

    # ――― steps ――― #

    async def _encrypt_in_place(self, temp_path: Path) -> EncryptedPayload:
        """Перезаписывает временный файл base64-шифртекстом."""
        raw = await read_file(temp_path)
        try:
            plaintext = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UploadFailed("Plain-text upload is not valid UTF-8") from e
        payload = self._cipher.encrypt(plaintext)
        await write_file(temp_path, payload.ciphertext.encode("ascii"))
        logger.debug("Encrypted temp artifact %s (nonce=%s)", temp_path.name, payload.nonce)
        return payload

    async def _extract_audio(self, temp_path: Path, declared_kind: str, payload: Optional[EncryptedPayload]) -> Optional[AudioTags]:
        """
        Читает локальные байты (возможно уже зашифрованные) и, если нужно, расшифровывает
        их только в памяти. Ошибки не пробрасываются: метаданные - это не обязательная часть загрузки.
        """
        try:
            data = await read_file(temp_path)
            if payload is not None:
                plaintext = self._cipher.decrypt(payload.model_copy(update={"ciphertext": data.decode("ascii")}))
                data = plaintext.encode("utf-8")
            return extract_audio_tags(self._tags, data, declared_kind)
        except (MetadataExtractionFailed, IntegrityError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Audio tag extraction skipped for {temp_path.name}: {e}")
            return None

    async def _persist_audio(self, file_id: UUID, tags: AudioTags):
        try:
            await self._media.upsert_audio(file_id, AudioMetadataIn(
                title=tags.title,
                artist=tags.artist,
                album=tags.album,
                cover=tags.cover_data_uri,
            ))
        except DatabaseError as e:
            # файл остаётся без метаданных
            logger.error(f"Failed to save audio metadata for file {file_id}: {e}")

    async def _remove_orphan_blob(self, storage_key: str):
        try:
            await self._blobs.remove_object(storage_key)
        except MinioError as e:
            logger.error(f"Orphaned blob '{storage_key}' could not be removed: {e}")

    async def _cleanup(self, temp_path: Path):
        try:
            await remove_file(temp_path)
        except OSError as e:
            logger.warning(f"Could not remove temp artifact {temp_path}: {e}")

    # ――― video tail ――― #

    def _spawn_video_tail(self, file_id: UUID, title: str, data: bytes, ext: str) -> asyncio.Task:
        task = asyncio.create_task(self._video_tail(file_id, title, data, ext), name=f"video-meta-{file_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _video_tail(self, file_id: UUID, title: str, data: bytes, ext: str):
        scratch: Optional[Path] = None
        try:
            scratch = await run_io_bound(self._make_scratch, data, ext)
            probe = await self._prober.probe(scratch)

            thumbnail = None
            try:
                frame = await self._prober.screenshot(scratch, self._settings.thumbnail_timestamp)
                await self._blobs.put_object(thumbnail_key(file_id), frame, content_type="image/jpeg")
                thumbnail = thumbnail_key(file_id)
            except (MetadataExtractionFailed, MinioError) as e:
                logger.warning(f"Thumbnail for video {file_id} skipped: {e}")

            await self._media.save_video(VideoMetadataInDB(
                file_id=file_id,
                title=title,
                duration=probe.duration_seconds,
                resolution=probe.resolution,
                thumbnail=thumbnail,
                codec=probe.codec_name,
            ))
        except Exception as e:
            # граница ошибок фоновой задачи: только лог, без повторов
            logger.error(f"Video metadata for file {file_id} not recorded: {e}")
        finally:
            if scratch is not None:
                await self._cleanup(scratch)

    def _make_scratch(self, data: bytes, ext: str) -> Path:
        self._temp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(suffix=ext, prefix="probe-", dir=self._temp_dir)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return Path(name)

    async def wait_for_background(self):
        """Дожидается фоновых задач. Нужно тестам и корректному завершению процесса."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
