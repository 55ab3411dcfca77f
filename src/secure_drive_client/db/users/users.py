from __future__ import annotations
from uuid import UUID, uuid4

from sqlalchemy import String, Boolean, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import Base, CreatedAt
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from ..files.stored_file_orm import StoredFileORM
    from ..files.access_grant_orm import AccessGrantORM


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[CreatedAt]

    files_owned: Mapped[list["StoredFileORM"]] = relationship("StoredFileORM", back_populates="owner")
    grants: Mapped[list["AccessGrantORM"]] = relationship(
        "AccessGrantORM", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
