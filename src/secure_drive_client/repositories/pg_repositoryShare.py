import logging
import secrets
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from secure_drive_client.db import ShareTokenORM
from secure_drive_client.db.base import get_session
from secure_drive_client.exceptions import DatabaseError

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "secdrive_share?"


def new_share_token() -> str:
    return f"{TOKEN_PREFIX}{secrets.token_hex(16)}"


class ShareRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_token(self, file_id: UUID) -> Optional[str]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(ShareTokenORM.token).where(ShareTokenORM.file_id == file_id))
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to read share token: {e}") from e
            return res.scalar_one_or_none()

    async def get_or_create_token(self, file_id: UUID) -> str:
        """
        Токен на файл один: если уже есть - возвращаем его, иначе создаём.
        Гонку двух одновременных запросов разруливает unique(file_id).
        """
        existing = await self.get_token(file_id)
        if existing:
            return existing
        token = new_share_token()
        async with get_session(self._session_factory) as session:
            try:
                session.add(ShareTokenORM(file_id=file_id, token=token))
                await session.commit()
                logger.info(f"Created share token for file {file_id}")
                return token
            except IntegrityError:
                await session.rollback()
                logger.debug(f"Share token for file {file_id} was created concurrently, reusing it")
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to create share token: {e}") from e
        return await self.get_token(file_id)

    async def find_file_id(self, token: str) -> Optional[UUID]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(ShareTokenORM.file_id).where(ShareTokenORM.token == token))
            except SQLAlchemyError as e:
                raise DatabaseError(f"Failed to look up share token: {e}") from e
            return res.scalar_one_or_none()
