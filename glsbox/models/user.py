"""Site user model."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from glsbox.models.base import Base


class UserRole(enum.IntEnum):
    """Role ordinal. Lower value = more privileged."""

    ADMIN = 0
    MODERATOR = 1
    USER = 2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Registered user with role-based access."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[int] = mapped_column(Integer, nullable=False, default=UserRole.USER)
    registration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    email_public: Mapped[bool] = mapped_column(Boolean, default=False)
    telegram: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)  # without leading @
    telegram_public: Mapped[bool] = mapped_column(Boolean, default=False)

    shaders = relationship("Shader", back_populates="owner_user")
