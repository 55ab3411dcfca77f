import logging
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from secure_drive_client.db.base import get_session
from secure_drive_client.db import AudioMetadataORM, VideoMetadataORM
from secure_drive_client.models.media import AudioMetadataIn, AudioMetadataInDB, VideoMetadataInDB
from secure_drive_client.exceptions import DatabaseError

logger = logging.getLogger(__name__)

class MediaMetaRepository:
    """
    Метаданные аудио (music_metadata) и видео (video_metadata), один к одному с файлом.
    """
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert_audio(self, file_id: UUID, meta: AudioMetadataIn) -> AudioMetadataInDB:
        """
        Создаёт или полностью перезаписывает метаданные аудио для файла.
        """
        async with get_session(self._session_factory) as session:
            try:
                orm = await session.get(AudioMetadataORM, file_id)
                if orm is None:
                    orm = AudioMetadataORM(file_id=file_id)
                    session.add(orm)
                orm.title = meta.title
                orm.artist = meta.artist
                orm.album = meta.album
                orm.cover = meta.cover
                orm.lyrics = meta.lyrics
                await session.commit()
                return AudioMetadataInDB.model_validate(orm)
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save audio metadata for {file_id}: {e}") from e

    async def get_audio(self, file_id: UUID) -> Optional[AudioMetadataInDB]:
        async with get_session(self._session_factory) as session:
            try:
                orm = await session.get(AudioMetadataORM, file_id)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to load audio metadata for {file_id}: {e}") from e
            return AudioMetadataInDB.model_validate(orm) if orm else None

    async def save_video(self, meta: VideoMetadataInDB) -> VideoMetadataInDB:
        orm = VideoMetadataORM(**meta.model_dump())
        async with get_session(self._session_factory) as session:
            try:
                session.add(orm)
                await session.commit()
                logger.info(f"Saved video metadata for file {meta.file_id}")
                return meta
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save video metadata for {meta.file_id}: {e}") from e

    async def get_video(self, file_id: UUID) -> Optional[VideoMetadataInDB]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(VideoMetadataORM).where(VideoMetadataORM.file_id == file_id))
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to load video metadata for {file_id}: {e}") from e
            orm = res.scalar_one_or_none()
            return VideoMetadataInDB.model_validate(orm) if orm else None
