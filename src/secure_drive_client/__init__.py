# Файл: src/secure_drive_client/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine
from .client import DriveClient
from .config import get_settings, DriveClientConfig, PostgresConfig, MinioConfig, CryptoConfig, MediaConfig
from .crypto import CipherEngine, EncryptedPayload
from .media import MutagenTagParser, FFmpegProber, TagParser, VideoProber
from .pipelines import UploadPipeline, ReadPipeline
from .repositories import (
    MinioRepository,
    FileRepository,
    PermissionRepository,
    MediaMetaRepository,
    ShareRepository,
    UserRepository,
)

from .exceptions import *


def create_engine_for(config: PostgresConfig) -> AsyncEngine:
    return create_async_engine(
            config.get_pg_dsn(),
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=config.pool_pre_ping,
            connect_args={
                "server_settings": {
                    "application_name": config.application_name
                }
            }
        )


def create_drive_client(
    config: Optional[DriveClientConfig] = None,
    *,
    engine: Optional[AsyncEngine] = None,
    blob_store=None,
    tag_parser: Optional[TagParser] = None,
    video_prober: Optional[VideoProber] = None,
) -> DriveClient:
    """
    Фабричная функция для создания и конфигурации DriveClient.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :param engine: Готовый AsyncEngine (например, sqlite в тестах). Иначе создаётся по config.postgres.
    :param blob_store, tag_parser, video_prober: подмена внешних возможностей.
    :raises ConfigurationError: если ключ шифрования некорректен. Проверяется один раз, здесь.
    """
    if config is None:
        config = get_settings().to_client_config()

    # ключ проверяем до того, как открывать соединения
    cipher = CipherEngine.from_hex(config.crypto.encryption_key)

    if engine is None:
        engine = create_engine_for(config.postgres)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    file_repo = FileRepository(session_factory)
    permission_repo = PermissionRepository(session_factory)
    media_repo = MediaMetaRepository(session_factory)
    share_repo = ShareRepository(session_factory)
    user_repo = UserRepository(session_factory)
    blobs = blob_store if blob_store is not None else MinioRepository(config.minio)

    upload_pipeline = UploadPipeline(
        cipher=cipher,
        blob_store=blobs,
        file_repo=file_repo,
        media_repo=media_repo,
        tag_parser=tag_parser or MutagenTagParser(),
        video_prober=video_prober or FFmpegProber(config.media),
        settings=config.media,
    )
    read_pipeline = ReadPipeline(cipher, blobs, file_repo, config.media)

    return DriveClient(
        cipher=cipher,
        blob_store=blobs,
        file_repo=file_repo,
        permission_repo=permission_repo,
        media_repo=media_repo,
        share_repo=share_repo,
        user_repo=user_repo,
        upload_pipeline=upload_pipeline,
        read_pipeline=read_pipeline,
        engine=engine,
    )

__all__ = [
    "DriveClient", "create_drive_client", "create_engine_for",
    "DriveClientConfig", "PostgresConfig", "MinioConfig", "CryptoConfig", "MediaConfig",
    "CipherEngine", "EncryptedPayload",
    "DriveClientError", "ConfigurationError", "IntegrityError", "DecryptionFailed",
    "UploadFailed", "MetadataExtractionFailed", "AccessDeniedError", "ConflictError",
    "FileNotFoundInDriveError", "DatabaseError", "MinioError",
]
