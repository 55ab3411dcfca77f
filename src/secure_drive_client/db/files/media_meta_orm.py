from uuid import UUID
from typing import Optional
from sqlalchemy import String, Text, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secure_drive_client.db.base import Base, CreatedAt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .stored_file_orm import StoredFileORM


class AudioMetadataORM(Base):
    __tablename__ = "music_metadata"

    file_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("files.id", ondelete="CASCADE"), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(Text)
    artist: Mapped[Optional[str]] = mapped_column(Text)
    album: Mapped[Optional[str]] = mapped_column(Text)
    cover: Mapped[Optional[str]] = mapped_column(Text, comment="data:<mime>;base64,<payload>")
    lyrics: Mapped[Optional[str]] = mapped_column(Text)

    file: Mapped["StoredFileORM"] = relationship(back_populates="audio_metadata")


class VideoMetadataORM(Base):
    __tablename__ = "video_metadata"

    file_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("files.id", ondelete="CASCADE"), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[Optional[int]] = mapped_column(Integer, comment="seconds, floor")
    resolution: Mapped[Optional[str]] = mapped_column(String(32), comment="WxH")
    thumbnail: Mapped[Optional[str]] = mapped_column(Text, comment="object-store key of the still frame")
    codec: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[CreatedAt]

    file: Mapped["StoredFileORM"] = relationship(back_populates="video_metadata")
