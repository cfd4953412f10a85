"""User API routes: profiles, per-user listings, profile edits."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from glsbox.models import Comment, Shader, User, UserRole
from glsbox.models.base import async_session_factory
from glsbox.services.comment_tree import comment_to_dict
from glsbox.services.permissions import editing_allowed
from glsbox.services.shaders import liked_shader_ids, shader_to_dict
from web.api.utils import CamelModel, Page, pagination
from web.auth import get_current_user, hash_password, require_user

logger = logging.getLogger("glsbox.api.users")

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def user_to_dict(user: User, private: bool = False) -> dict:
    """Public profile. ``private`` adds contacts regardless of visibility flags."""
    data = {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "registrationDate": user.registration_date,
        "email": user.email if (private or user.email_public) else None,
        "telegram": user.telegram if (private or user.telegram_public) else None,
    }
    if private:
        data["emailPublic"] = user.email_public
        data["telegramPublic"] = user.telegram_public
    return data


class UserUpdate(CamelModel):
    email: Optional[str] = None
    email_public: Optional[bool] = None
    telegram: Optional[str] = None
    telegram_public: Optional[bool] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None


@router.get("/me")
async def get_me(user: User = Depends(require_user)):
    """Get current authenticated user."""
    return user_to_dict(user, private=True)


@router.get("/{user_id}")
async def get_user(user_id: int, viewer: Optional[User] = Depends(get_current_user)):
    async with async_session_factory() as session:
        user = await session.get(User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        private = viewer is not None and await editing_allowed(session, viewer, user)
        return user_to_dict(user, private=private)


@router.patch("/{user_id}")
async def update_user(user_id: int, body: UserUpdate, actor: User = Depends(require_user)):
    """Update profile fields. Role changes need an admin actor and a non-admin target."""
    updates = body.model_dump(exclude_unset=True)
    async with async_session_factory() as session:
        user = await session.get(User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        if not await editing_allowed(session, actor, user):
            raise HTTPException(403, "You cannot edit this user")
        if updates.get("role") is not None:
            if actor.role != UserRole.ADMIN or user.role == UserRole.ADMIN:
                raise HTTPException(403, "You cannot change the role of this user")
            user.role = updates["role"]
        if updates.get("password"):
            if len(updates["password"]) < 6:
                raise HTTPException(400, "Password must be at least 6 characters")
            user.password_hash = hash_password(updates["password"])
        if "email" in updates:
            user.email = updates["email"] or None
        if "telegram" in updates:
            user.telegram = (updates["telegram"] or "").lstrip("@") or None
        if updates.get("email_public") is not None:
            user.email_public = updates["email_public"]
        if updates.get("telegram_public") is not None:
            user.telegram_public = updates["telegram_public"]
        await session.commit()
        logger.info("User %d updated by %d: %s", user.id, actor.id, sorted(k for k in updates if k != "password"))
        return user_to_dict(user, private=True)


@router.get("/{user_id}/shaders")
async def list_user_shaders(
    user_id: int,
    page: Page = Depends(pagination),
    viewer: Optional[User] = Depends(get_current_user),
):
    """Shaders owned by a user, newest first. Unpublished ones only for the owner or higher roles."""
    async with async_session_factory() as session:
        if not await session.get(User, user_id):
            raise HTTPException(404, "User not found")
        query = select(Shader).where(Shader.owner == user_id)
        if viewer is None or not await editing_allowed(session, viewer, user_id):
            query = query.where(Shader.published.is_(True))
        result = await session.execute(
            query.order_by(Shader.creation_date.desc(), Shader.id.desc()).limit(page.limit).offset(page.offset)
        )
        shaders = result.scalars().all()
        liked = await liked_shader_ids(session, viewer.id if viewer else None, [s.id for s in shaders])
        return [shader_to_dict(s, liked=s.id in liked) for s in shaders]


@router.get("/{user_id}/comments")
async def list_user_comments(
    user_id: int,
    shader: Optional[int] = Query(None),
    page: Page = Depends(pagination),
):
    """Comments written by a user, newest first, optionally under one shader."""
    async with async_session_factory() as session:
        if not await session.get(User, user_id):
            raise HTTPException(404, "User not found")
        query = select(Comment).where(Comment.author == user_id)
        if shader is not None:
            query = query.where(Comment.parent_shader == shader)
        result = await session.execute(
            query.options(selectinload(Comment.author_user))
            .order_by(Comment.posted.desc(), Comment.id.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        return [comment_to_dict(c) for c in result.scalars().all()]


@router.get("/{user_id}/commented-shaders")
async def list_commented_shaders(user_id: int, page: Page = Depends(pagination)):
    """Ids of shaders the user commented on, most recently commented first."""
    async with async_session_factory() as session:
        if not await session.get(User, user_id):
            raise HTTPException(404, "User not found")
        last_posted = func.max(Comment.posted)
        result = await session.execute(
            select(Comment.parent_shader)
            .where(Comment.author == user_id)
            .group_by(Comment.parent_shader)
            .order_by(last_posted.desc(), Comment.parent_shader.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
        return list(result.scalars().all())
