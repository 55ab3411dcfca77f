from uuid import UUID, uuid4
from sqlalchemy import String, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secure_drive_client.db.base import Base, CreatedAt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .stored_file_orm import StoredFileORM


class ShareTokenORM(Base):
    __tablename__ = "shares"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    # не больше одного токена на файл
    file_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    token: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[CreatedAt]

    file: Mapped["StoredFileORM"] = relationship(back_populates="share_token")
