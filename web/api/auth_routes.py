"""Auth API routes: register, login, logout."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import field_validator
from sqlalchemy import select

import config
from glsbox.models import User, UserRole
from glsbox.models.base import async_session_factory
from web.api.utils import CamelModel
from web.api.user_routes import user_to_dict
from web.auth import (
    authenticate,
    clear_session_cookie,
    create_access_token,
    get_user_by_username,
    hash_password,
    set_session_cookie,
)

logger = logging.getLogger("glsbox.auth")

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class LoginRequest(CamelModel):
    username: str
    password: str


class RegisterRequest(CamelModel):
    username: str
    password: str
    email: Optional[str] = None
    telegram: Optional[str] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 64:
            raise ValueError("Username must be 1-64 characters")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


def _login_response(response: Response, user: User) -> dict:
    token = create_access_token(user)
    set_session_cookie(response, token)
    return {"accessToken": token, "tokenType": "bearer", "user": user_to_dict(user, private=True)}


async def _bootstrap_admin() -> User:
    async with async_session_factory() as session:
        user = User(
            username=config.INITIAL_ADMIN_USERNAME,
            password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
            role=UserRole.ADMIN,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
    logger.info("Created initial admin %s", user.username)
    return user


@router.post("/login")
async def login(body: LoginRequest, response: Response):
    """Authenticate; returns a JWT and sets the session cookie."""
    user = await authenticate(body.username, body.password)
    if not user:
        # Bootstrap: if INITIAL_ADMIN_PASSWORD is set and matches, create admin
        if (
            config.INITIAL_ADMIN_PASSWORD
            and body.username == config.INITIAL_ADMIN_USERNAME
            and body.password == config.INITIAL_ADMIN_PASSWORD
            and not await get_user_by_username(body.username)
        ):
            user = await _bootstrap_admin()
        else:
            raise HTTPException(401, "Invalid username or password")
    return _login_response(response, user)


@router.post("/register")
async def register(body: RegisterRequest, response: Response):
    """Create a normal user account and log it in."""
    async with async_session_factory() as session:
        existing = await session.execute(select(User).where(User.username == body.username))
        if existing.scalar_one_or_none():
            raise HTTPException(400, "Username already exists")
        user = User(
            username=body.username,
            password_hash=hash_password(body.password),
            role=UserRole.USER,
            email=body.email or None,
            telegram=(body.telegram or "").lstrip("@") or None,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
    logger.info("Registered user %s (id %d)", user.username, user.id)
    return _login_response(response, user)


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {}
