# src/secure_drive_client/repositories/pg_repositoryUser.py

import logging
from uuid import UUID
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession
from passlib.context import CryptContext # Для хеширования паролей

from secure_drive_client.db import UserORM
from secure_drive_client.db.base import get_session
from secure_drive_client.exceptions import DatabaseError
from secure_drive_client.models.user import UserInDB

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def get_password_hash(password: str) -> str:
    """Создает хеш из обычного пароля."""
    return pwd_context.hash(password)


class UserRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_user(self, email: str, plain_password: str, name: str) -> UserInDB:
        """
        Создает нового пользователя. Email уникален.
        """
        user = UserORM(
            email=email,
            name=name,
            hashed_password=get_password_hash(plain_password),
        )
        async with get_session(self._session_factory) as session:
            try:
                session.add(user)
                await session.commit()
                await session.refresh(user)
                logger.info(f"Created user {user.id}")
                return UserInDB.model_validate(user)
            except IntegrityError as e:
                await session.rollback()
                raise DatabaseError(f"User with email {email} already exists.") from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to create user: {e}") from e

    async def get_by_id(self, user_id: UUID) -> Optional[UserInDB]:
        """Находит пользователя по его UUID."""
        async with get_session(self._session_factory) as session:
            result = await session.execute(select(UserORM).where(UserORM.id == user_id))
            orm = result.scalar_one_or_none()
            return UserInDB.model_validate(orm) if orm else None

