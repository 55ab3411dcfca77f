from uuid import UUID, uuid4
from typing import Optional
from sqlalchemy import String, BigInteger, Boolean, Integer, ForeignKey, CheckConstraint, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secure_drive_client.db.base import Base, CreatedAt, UpdatedAt
from secure_drive_client.models.file import StoredFileInDB

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .access_grant_orm import AccessGrantORM
    from .media_meta_orm import AudioMetadataORM, VideoMetadataORM
    from .share_token_orm import ShareTokenORM
    from ..users.users import UserORM


class StoredFileORM(Base):
    __tablename__ = "files"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # declared kind, MIME-подобная строка ('text/plain', 'audio/mpeg', ...)
    kind: Mapped[str] = mapped_column(String(255), nullable=False)
    # размер ДО шифрования: длина blob'а в хранилище у text/plain другая
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_path: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    nonce: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    auth_tag: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # 'base64' у новых записей, NULL у старых (hex/base64 определяется эвристикой)
    cipher_encoding: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_encrypted: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))

    owner_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[CreatedAt]
    updated_at: Mapped[UpdatedAt]

    owner: Mapped["UserORM"] = relationship("UserORM", back_populates="files_owned")
    grants: Mapped[list["AccessGrantORM"]] = relationship(
        "AccessGrantORM", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
    audio_metadata: Mapped[Optional["AudioMetadataORM"]] = relationship(
        "AudioMetadataORM", back_populates="file", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    video_metadata: Mapped[Optional["VideoMetadataORM"]] = relationship(
        "VideoMetadataORM", back_populates="file", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    share_token: Mapped[Optional["ShareTokenORM"]] = relationship(
        "ShareTokenORM", back_populates="file", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "NOT is_encrypted OR (nonce IS NOT NULL AND nonce <> '' AND auth_tag IS NOT NULL AND auth_tag <> '')",
            name="encrypted_has_nonce_tag",
        ),
        Index("idx_files_owner_id", "owner_id"),
    )

    def to_pydantic(self) -> StoredFileInDB:
        return StoredFileInDB.model_validate(self)
