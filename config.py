"""Configuration for GLSBox."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# Public site URL (used in bot message links)
HOST = os.getenv("HOST", "http://localhost:8000").rstrip("/")

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'glsbox.db'}",
)

# Telegram bot (empty token disables the bot and reply notifications)
BOT_TOKEN = os.getenv("BOT_TOKEN", "")
BOT_POLL_TIMEOUT = _parse_int(os.getenv("BOT_POLL_TIMEOUT", "30"), 30)

# Blob storage: "local" or "cloudinary"
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local").lower()
STORAGE_PATH = os.getenv("STORAGE_PATH", str(Path(__file__).parent / "files"))
STORAGE_BASE_URL = os.getenv("STORAGE_BASE_URL", "/files").rstrip("/")
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
PREVIEW_FOLDER = os.getenv("PREVIEW_FOLDER", "glsbox-previews")
TEXTURE_FOLDER = os.getenv("TEXTURE_FOLDER", "glsbox-textures")

# Comments
COMMENT_DEFAULT_DEPTH = 10
COMMENT_MAX_DEPTH = _parse_int(os.getenv("COMMENT_MAX_DEPTH", "50"), 50)

# Pagination
PAGE_DEFAULT_LIMIT = 20
PAGE_MAX_LIMIT = 100

# Web auth (JWT secret, session cookie, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 7
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "glsbox_session")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "").lower() in ("1", "true", "yes")
INITIAL_ADMIN_USERNAME = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin
