import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update, delete, func, text, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from secure_drive_client.crypto.cipher import EncryptedPayload
from secure_drive_client.db import StoredFileORM, AccessGrantORM, ShareTokenORM
from secure_drive_client.db.files.access_grant_orm import WRITE
from secure_drive_client.db.base import get_session
from secure_drive_client.db.uow import AsyncUnitOfWork
from secure_drive_client.exceptions import DatabaseError, ConflictError, FileNotFoundInDriveError
from secure_drive_client.models.file import StoredFileInDB, FileListItem

logger = logging.getLogger(__name__)

class FileRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking database connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("Database connection successful.")
            except SQLAlchemyError as e:
                logger.error(f"Database connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def create_with_owner_grant(self, stored_file: StoredFileORM) -> StoredFileInDB:
        """
        Транзакционно вставляет запись о файле и grant 'write' для владельца.
        Либо обе строки, либо ни одной: файл без владельческого доступа никому не виден.
        """
        try:
            async with AsyncUnitOfWork(self._session_factory) as uow:
                uow.session.add(stored_file)
                await uow.session.flush()
                uow.session.add(AccessGrantORM(
                    user_id=stored_file.owner_id,
                    file_id=stored_file.id,
                    permission=WRITE,
                ))
                await uow.session.flush()
                # подтягиваем server_default (created_at и т.п.) до коммита
                await uow.session.refresh(stored_file)
                result = stored_file.to_pydantic()
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert file record '{stored_file.name}': {e}")
            raise DatabaseError(f"Failed to insert file record: {e}") from e
        logger.info(f"File {result.id} created with owner grant for user {result.owner_id}")
        return result

    async def get(self, file_id: UUID) -> Optional[StoredFileInDB]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(StoredFileORM).where(StoredFileORM.id == file_id))
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to load file {file_id}: {e}") from e
            orm = res.scalar_one_or_none()
            return orm.to_pydantic() if orm else None

    async def update_content_fields(
        self,
        file_id: UUID,
        payload: EncryptedPayload,
        expected_version: Optional[int] = None,
    ) -> StoredFileInDB:
        """
        Записывает новые nonce/tag после перешифрования и поднимает version.
        Если передан expected_version и он не совпал с версией строки - ConflictError.
        """
        conditions = [StoredFileORM.id == file_id]
        if expected_version is not None:
            conditions.append(StoredFileORM.version == expected_version)
        stmt = (
            update(StoredFileORM)
            .where(*conditions)
            .values(
                nonce=payload.nonce,
                auth_tag=payload.tag,
                cipher_encoding=payload.encoding,
                is_encrypted=True,
                version=StoredFileORM.version + 1,
                updated_at=func.now(),
            )
            .returning(StoredFileORM)
        )
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(stmt)
                orm = res.scalar_one_or_none()
                if orm is None:
                    await session.rollback()
                    if expected_version is not None and await self.get(file_id) is not None:
                        raise ConflictError(f"File {file_id} was modified concurrently (expected version {expected_version})")
                    raise FileNotFoundInDriveError(f"File {file_id} not found.")
                result = orm.to_pydantic()
                await session.commit()
                return result
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to update content fields for file {file_id}: {e}")
                raise DatabaseError(f"Failed to update file {file_id}: {e}") from e

    async def list_for_user(self, user_id: UUID) -> List[FileListItem]:
        """Файлы, которыми пользователь владеет или к которым у него есть grant. Свежие сверху."""
        granted = select(AccessGrantORM.file_id).where(AccessGrantORM.user_id == user_id)
        stmt = (
            select(StoredFileORM, ShareTokenORM.id.is_not(None).label("is_shared"))
            .outerjoin(ShareTokenORM, ShareTokenORM.file_id == StoredFileORM.id)
            .where(or_(StoredFileORM.owner_id == user_id, StoredFileORM.id.in_(granted)))
            .order_by(StoredFileORM.updated_at.desc())
        )
        async with get_session(self._session_factory) as session:
            try:
                rows = (await session.execute(stmt)).all()
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to list files for user {user_id}: {e}") from e
            return [
                FileListItem.model_validate(orm).model_copy(update={"is_shared": bool(is_shared)})
                for orm, is_shared in rows
            ]

    async def delete(self, file_id: UUID) -> bool:
        """Удаляет запись о файле. Метаданные, grant'ы и share-токен уходят каскадом в БД."""
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(StoredFileORM).where(StoredFileORM.id == file_id))
                await session.commit()
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to delete file {file_id}: {e}") from e
