"""Shader like - existence means the user likes the shader."""
from __future__ import annotations

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from glsbox.models.base import Base


class Like(Base):
    """(user, shader) pair. The composite key keeps concurrent likes from double-inserting."""

    __tablename__ = "likes"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), primary_key=True)
    shader_id: Mapped[int] = mapped_column(ForeignKey("shaders.id"), primary_key=True)

    shader: Mapped["Shader"] = relationship("Shader", back_populates="likes")
