# secure_drive_client/repositories/pg_repositoryPermission.py

import logging
from uuid import UUID
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from secure_drive_client.db import AccessGrantORM
from secure_drive_client.db.files.access_grant_orm import READ, WRITE
from secure_drive_client.db.base import get_session
from secure_drive_client.exceptions import DatabaseError, GrantExistsError

logger = logging.getLogger(__name__)

class PermissionRepository:
    """
    Репозиторий grant'ов: связь пользователь - файл с уровнем 'read' или 'write'.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_permission(self, file_id: UUID, user_id: UUID) -> Optional[str]:
        """Возвращает уровень доступа пользователя к файлу или None."""
        stmt = select(AccessGrantORM.permission).where(
            AccessGrantORM.file_id == file_id,
            AccessGrantORM.user_id == user_id
        )
        async with get_session(self._session_factory) as session:
            try:
                result = await session.execute(stmt)
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to read permission: {e}") from e
            return result.scalar_one_or_none()

    async def grant_permission(
        self,
        file_id: UUID,
        user_id: UUID,
        permission_level: str = READ
    ):
        """
        Создаёт grant. Один grant на пару (user, file): повторная выдача - GrantExistsError.
        """
        if permission_level not in (READ, WRITE):
            raise ValueError(f"Unknown permission level '{permission_level}'")
        grant = AccessGrantORM(
            file_id=file_id,
            user_id=user_id,
            permission=permission_level
        )
        async with get_session(self._session_factory) as session:
            try:
                session.add(grant)
                await session.commit()
                logger.info(f"Granted '{permission_level}' permission for file {file_id} to user {user_id}")
            except IntegrityError as e:
                await session.rollback()
                raise GrantExistsError(f"User {user_id} already has access to file {file_id}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to grant permission for file {file_id} to user {user_id}: {e}")
                raise DatabaseError(f"Failed to grant permission: {e}")

    async def revoke_permission(self, file_id: UUID, user_id: UUID) -> bool:
        """
        Отзывает право доступа пользователя к файлу.
        """
        stmt = delete(AccessGrantORM).where(
            AccessGrantORM.file_id == file_id,
            AccessGrantORM.user_id == user_id
        )
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(stmt)
                await session.commit()
                logger.info(f"Revoked permission for file {file_id} from user {user_id}")
                return res.rowcount > 0
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to revoke permission for file {file_id} from user {user_id}: {e}")
                raise DatabaseError(f"Failed to revoke permission: {e}")
