"""Database models."""
from glsbox.models.base import Base, init_db
from glsbox.models.user import User, UserRole
from glsbox.models.shader import Shader, ShaderTexture, TextureKind
from glsbox.models.comment import Comment
from glsbox.models.like import Like
from glsbox.models.bot_user import BotUser  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Shader",
    "ShaderTexture",
    "TextureKind",
    "Comment",
    "Like",
    "BotUser",
    "init_db",
]
