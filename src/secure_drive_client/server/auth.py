from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from secure_drive_client import DriveClient, create_drive_client
from secure_drive_client.config import get_settings
from secure_drive_client.models import UserInDB

# Токены выдаёт внешний сервис аутентификации, здесь только проверка подписи
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

_client: Optional[DriveClient] = None


def get_drive_client() -> DriveClient:
    """Один DriveClient на процесс: пул соединений и фоновые задачи общие."""
    global _client
    if _client is None:
        _client = create_drive_client()
    return _client


class TokenData(BaseModel):
    sub: str | None = None


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    """Создает новый JWT-токен."""
    auth = get_settings().auth
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or auth.access_token_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, auth.secret_key, algorithm=auth.algorithm)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    drive: Annotated[DriveClient, Depends(get_drive_client)],
) -> UserInDB:
    """
    Проверяет Bearer-токен и возвращает пользователя.
    Неверная подпись, истёкший токен или неизвестный sub - 401.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    auth = get_settings().auth
    try:
        payload = jwt.decode(token, auth.secret_key, algorithms=[auth.algorithm])
        token_data = TokenData(sub=payload.get("sub"))
        if token_data.sub is None:
            raise credentials_exception
        user_id = UUID(token_data.sub)
    except (JWTError, ValueError):
        raise credentials_exception

    user = await drive.get_user_by_id(user_id)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: Annotated[UserInDB, Depends(get_current_user)]
) -> UserInDB:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user
