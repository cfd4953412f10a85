"""Depth-bounded retrieval of shader comment threads."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from glsbox.models import Comment


class CommentNotFound(Exception):
    """Requested comment does not exist under the shader."""


def author_summary(comment: Comment) -> dict:
    user = comment.author_user
    return {"id": user.id, "username": user.username}


def comment_to_dict(comment: Comment) -> dict:
    """Comment fields with author summary (no children)."""
    return {
        "id": comment.id,
        "author": author_summary(comment),
        "text": comment.text,
        "parentShader": comment.parent_shader,
        "parentComment": comment.parent_comment,
        "posted": comment.posted,
        "lastEdited": comment.last_edited,
    }


def _node(comment: Comment) -> dict:
    return {**comment_to_dict(comment), "children": [], "childrenTruncated": False}


async def _fetch_level(
    session: AsyncSession, shader_id: int, parent_ids: list[Optional[int]]
) -> list[Comment]:
    """Comments under any of ``parent_ids`` (None = top level), oldest first."""
    query = select(Comment).where(Comment.parent_shader == shader_id)
    if parent_ids == [None]:
        query = query.where(Comment.parent_comment.is_(None))
    else:
        query = query.where(Comment.parent_comment.in_(parent_ids))
    result = await session.execute(
        query.options(selectinload(Comment.author_user)).order_by(Comment.posted, Comment.id)
    )
    return list(result.scalars().all())


async def _reply_counts(session: AsyncSession, shader_id: int, parent_ids: list[Optional[int]]) -> dict:
    if parent_ids == [None]:
        result = await session.execute(
            select(func.count(Comment.id)).where(
                Comment.parent_shader == shader_id, Comment.parent_comment.is_(None)
            )
        )
        return {None: result.scalar_one()}
    result = await session.execute(
        select(Comment.parent_comment, func.count(Comment.id))
        .where(Comment.parent_shader == shader_id, Comment.parent_comment.in_(parent_ids))
        .group_by(Comment.parent_comment)
    )
    return dict(result.all())


async def _expand(session: AsyncSession, shader_id: int, parents: list[dict], depth: int) -> None:
    """Fill ``children`` of ``parents`` down to ``depth`` levels, one query per level.

    ``parents`` are nodes (or the synthetic root, id None) whose own children
    are still empty. Nodes at the depth boundary get ``childrenTruncated`` set
    when replies exist below them.
    """
    frontier = parents
    while frontier:
        parent_ids = [node["id"] for node in frontier]
        if depth <= 0:
            counts = await _reply_counts(session, shader_id, parent_ids)
            for node in frontier:
                node["childrenTruncated"] = counts.get(node["id"], 0) > 0
            return
        by_parent = {node["id"]: node for node in frontier}
        next_frontier = []
        for comment in await _fetch_level(session, shader_id, parent_ids):
            child = _node(comment)
            by_parent[comment.parent_comment]["children"].append(child)
            next_frontier.append(child)
        frontier = next_frontier
        depth -= 1


def clamp_depth(depth: Optional[int]) -> int:
    if depth is None:
        return config.COMMENT_DEFAULT_DEPTH
    return max(0, min(depth, config.COMMENT_MAX_DEPTH))


async def get_comments(
    session: AsyncSession, shader_id: int, parent_id: Optional[int], depth: int
) -> list[dict]:
    """Comments directly under ``parent_id`` (None = top level), each expanded to ``depth - 1``."""
    if depth <= 0:
        return []
    holder = {"id": parent_id, "children": [], "childrenTruncated": False}
    await _expand(session, shader_id, [holder], depth)
    return holder["children"]


async def get_comment(
    session: AsyncSession,
    shader_id: int,
    comment_id: Optional[int] = None,
    depth: Optional[int] = None,
) -> dict:
    """Whole thread of a shader (``root: True``) or one comment with its replies."""
    depth = clamp_depth(depth)
    if comment_id is None:
        root = {"id": None, "children": [], "childrenTruncated": False}
        await _expand(session, shader_id, [root], depth)
        return {"root": True, "children": root["children"], "childrenTruncated": root["childrenTruncated"]}

    result = await session.execute(
        select(Comment)
        .where(Comment.id == comment_id, Comment.parent_shader == shader_id)
        .options(selectinload(Comment.author_user))
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        raise CommentNotFound(comment_id)
    node = _node(comment)
    await _expand(session, shader_id, [node], depth - 1)
    return node
