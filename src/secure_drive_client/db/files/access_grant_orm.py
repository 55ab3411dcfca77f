from uuid import UUID
from sqlalchemy import String, ForeignKey, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from secure_drive_client.db.base import Base, CreatedAt

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .stored_file_orm import StoredFileORM
    from ..users.users import UserORM

READ = "read"
WRITE = "write"


class AccessGrantORM(Base):
    __tablename__ = "user_files"

    # составной PK: ровно один grant на пару (user, file)
    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    file_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("files.id", ondelete="CASCADE"), primary_key=True)
    permission: Mapped[str] = mapped_column(String(16), nullable=False, default=READ)
    created_at: Mapped[CreatedAt]

    __table_args__ = (
        CheckConstraint("permission IN ('read', 'write')", name="permission_level"),
    )

    file: Mapped["StoredFileORM"] = relationship(back_populates="grants")
    user: Mapped["UserORM"] = relationship(back_populates="grants")
