from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AudioTags(BaseModel):
    """Теги, извлечённые из аудиофайла. Отсутствующий тег - None, а не ошибка."""
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    cover_data_uri: Optional[str] = None


class AudioMetadataIn(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    cover: Optional[str] = None
    lyrics: Optional[str] = None


class AudioMetadataInDB(AudioMetadataIn):
    model_config = ConfigDict(from_attributes=True)

    file_id: UUID


class VideoProbe(BaseModel):
    duration_seconds: int
    width: Optional[int] = None
    height: Optional[int] = None
    codec_name: Optional[str] = None

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None


class VideoMetadataInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: UUID
    title: str
    duration: Optional[int] = None
    resolution: Optional[str] = None
    thumbnail: Optional[str] = None
    codec: Optional[str] = None
