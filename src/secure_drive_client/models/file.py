from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class StoredFileInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    kind: str
    size: int
    storage_path: str
    nonce: Optional[str] = None
    auth_tag: Optional[str] = None
    cipher_encoding: Optional[str] = None
    is_encrypted: bool
    version: int = 1
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


class FileListItem(BaseModel):
    """Строка списка файлов пользователя (без криптополей)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    kind: str
    size: int
    owner_id: UUID
    created_at: datetime
    updated_at: datetime
    is_shared: bool = False


class DownloadResult(BaseModel):
    content: bytes
    content_type: str
    file_name: str
