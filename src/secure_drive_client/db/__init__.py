# secure_drive_client/db/__init__.py

from .base import Base

from .users.users import UserORM
from .files.stored_file_orm import StoredFileORM
from .files.access_grant_orm import AccessGrantORM
from .files.media_meta_orm import AudioMetadataORM, VideoMetadataORM
from .files.share_token_orm import ShareTokenORM


__all__ = [
    "Base",
    "UserORM",
    "StoredFileORM",
    "AccessGrantORM",
    "AudioMetadataORM",
    "VideoMetadataORM",
    "ShareTokenORM",
]
