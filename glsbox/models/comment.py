"""Threaded shader comments."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from glsbox.models.base import Base
from glsbox.models.user import utcnow


class Comment(Base):
    """Comment on a shader. Root comments have parent_comment = None."""

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    author: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    parent_shader: Mapped[int] = mapped_column(ForeignKey("shaders.id"), nullable=False, index=True)
    parent_comment: Mapped[Optional[int]] = mapped_column(ForeignKey("comments.id"), nullable=True, index=True)
    posted: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_edited: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    author_user: Mapped["User"] = relationship("User")
    shader: Mapped["Shader"] = relationship("Shader", back_populates="comments", foreign_keys=[parent_shader])
    replies = relationship(
        "Comment",
        back_populates="parent",
        cascade="all, delete-orphan",
    )
    parent: Mapped[Optional["Comment"]] = relationship("Comment", back_populates="replies", remote_side=[id])
