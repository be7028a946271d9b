"""
Folder hierarchy and folder sharing models.
"""

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mediavault.db.database import Base
from mediavault.db.models.base import TimestampMixin, UUIDPrimaryKeyMixin


class FolderModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A folder in its owner's tree. A null parent marks a root folder."""

    __tablename__ = "folders"

    user_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    parent_folder_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("folders.id"),
        nullable=True,
        index=True,
    )


class FolderShareModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Grant of a folder owner's folder to another user."""

    __tablename__ = "folder_shares"
    __table_args__ = (
        UniqueConstraint("folder_id", "shared_with_user_id", name="uq_folder_share_target"),
        CheckConstraint("owner_user_id <> shared_with_user_id", name="ck_folder_share_not_self"),
    )

    folder_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("folders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_user_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    shared_with_user_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission_level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="read_only",
    )
    include_subfolders: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
