"""Shader and shader texture models."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from glsbox.models.base import Base
from glsbox.models.user import utcnow


class TextureKind(enum.IntEnum):
    """How a texture is sampled by the shader."""

    NORMAL = 0
    NORMAL_VFLIP = 1
    CUBEMAP = 2


class Shader(Base):
    """GLSL fragment shader owned by a user."""

    __tablename__ = "shaders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    code: Mapped[str] = mapped_column(Text, default="")
    published: Mapped[bool] = mapped_column(Boolean, default=False)
    creation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    publishing_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)  # first publish only
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    preview_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    preview_key: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)  # blob store id

    owner_user: Mapped["User"] = relationship("User", back_populates="shaders")
    textures = relationship(
        "ShaderTexture",
        back_populates="shader",
        cascade="all, delete-orphan",
        order_by="ShaderTexture.id",
    )
    comments = relationship(
        "Comment",
        back_populates="shader",
        cascade="all, delete-orphan",
        foreign_keys="Comment.parent_shader",
    )
    likes = relationship("Like", back_populates="shader", cascade="all, delete-orphan")


class ShaderTexture(Base):
    """Texture file attached to a shader."""

    __tablename__ = "shader_textures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shader_id: Mapped[int] = mapped_column(ForeignKey("shaders.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    texture_kind: Mapped[int] = mapped_column(Integer, nullable=False, default=TextureKind.NORMAL)
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    key: Mapped[str] = mapped_column(String(256), nullable=False)  # blob store id

    shader: Mapped["Shader"] = relationship("Shader", back_populates="textures")
