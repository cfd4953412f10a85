"""Comment API routes: thread retrieval, post, edit, delete."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import field_validator
from sqlalchemy.orm import selectinload

from glsbox.bot.notify import notify_comment_reply
from glsbox.models import Comment, Shader, User
from glsbox.models.base import async_session_factory
from glsbox.models.user import utcnow
from glsbox.services.comment_tree import CommentNotFound, comment_to_dict, get_comment
from glsbox.services.permissions import editing_allowed
from web.api.utils import CamelModel
from web.auth import require_user

logger = logging.getLogger("glsbox.api.comments")

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


class CommentCreate(CamelModel):
    parent_shader: int
    text: str
    parent_comment: Optional[int] = None

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment text must not be empty")
        return v


class CommentUpdate(CamelModel):
    id: int
    text: str

    @field_validator("text")
    @classmethod
    def check_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment text must not be empty")
        return v


async def _load_comment(session, comment_id: int) -> Optional[Comment]:
    return await session.get(
        Comment, comment_id, options=[selectinload(Comment.author_user)], populate_existing=True
    )


@router.get("/{shader_id}")
async def get_comments(
    shader_id: int,
    depth: Optional[int] = Query(None, ge=0),
    comment: Optional[int] = Query(None),
):
    """Comment thread of a shader, or one comment (``comment``) with its replies."""
    async with async_session_factory() as session:
        if not await session.get(Shader, shader_id):
            raise HTTPException(404, "Shader not found")
        try:
            return await get_comment(session, shader_id, comment, depth)
        except CommentNotFound:
            raise HTTPException(404, "Comment not found")


@router.post("")
async def post_comment(
    body: CommentCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_user),
):
    """Post a comment; the parent comment's author is notified of replies."""
    async with async_session_factory() as session:
        if not await session.get(Shader, body.parent_shader):
            raise HTTPException(404, "Parent shader not found")
        parent = None
        if body.parent_comment is not None:
            parent = await _load_comment(session, body.parent_comment)
            if not parent:
                raise HTTPException(404, "Parent comment not found")
            if parent.parent_shader != body.parent_shader:
                raise HTTPException(400, "Parent comment belongs to another shader")
        comment = Comment(
            author=user.id,
            text=body.text,
            parent_shader=body.parent_shader,
            parent_comment=body.parent_comment,
        )
        session.add(comment)
        await session.commit()
        comment = await _load_comment(session, comment.id)
        if parent is not None and parent.author != user.id:
            background_tasks.add_task(notify_comment_reply, parent.author_user, user, comment)
        return comment_to_dict(comment)


@router.patch("")
async def edit_comment(body: CommentUpdate, user: User = Depends(require_user)):
    """Edit comment text. Author only; sets lastEdited."""
    async with async_session_factory() as session:
        comment = await _load_comment(session, body.id)
        if not comment:
            raise HTTPException(404, "Comment not found")
        if comment.author != user.id:
            raise HTTPException(403, "You are not allowed to edit this comment")
        comment.text = body.text
        comment.last_edited = utcnow()
        await session.commit()
        return comment_to_dict(comment)


@router.delete("/{comment_id}")
async def delete_comment(comment_id: int, user: User = Depends(require_user)):
    """Delete a comment and its replies. Author or a higher role."""
    async with async_session_factory() as session:
        comment = await session.get(Comment, comment_id)
        if not comment:
            raise HTTPException(404, "Comment not found")
        if not await editing_allowed(session, user, comment.author):
            raise HTTPException(403, "You are not allowed to delete this comment")
        await session.delete(comment)
        await session.commit()
        logger.info("Comment %d deleted by user %d", comment_id, user.id)
        return {}
