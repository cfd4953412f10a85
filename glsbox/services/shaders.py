"""Shader publish/like transitions and serialisation."""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from glsbox.models import Like, Shader, ShaderTexture
from glsbox.models.user import utcnow


def texture_to_dict(texture: ShaderTexture) -> dict:
    return {
        "id": texture.id,
        "shaderId": texture.shader_id,
        "name": texture.name,
        "textureKind": texture.texture_kind,
        "url": texture.url,
    }


def shader_to_dict(shader: Shader, textures: list[ShaderTexture] | None = None, liked: bool = False) -> dict:
    data = {
        "id": shader.id,
        "owner": shader.owner,
        "name": shader.name,
        "description": shader.description,
        "code": shader.code,
        "published": shader.published,
        "creationDate": shader.creation_date,
        "publishingDate": shader.publishing_date,
        "likeCount": shader.like_count,
        "previewUrl": shader.preview_url,
        "liked": liked,
    }
    if textures is not None:
        data["textures"] = [texture_to_dict(t) for t in textures]
    return data


def set_published(shader: Shader, published: bool) -> None:
    """Toggle visibility. The first publish stamps publishing_date; it is never cleared."""
    shader.published = published
    if published and shader.publishing_date is None:
        shader.publishing_date = utcnow()


async def is_liked(session: AsyncSession, user_id: int | None, shader_id: int) -> bool:
    if user_id is None:
        return False
    return await session.get(Like, (user_id, shader_id)) is not None


async def liked_shader_ids(session: AsyncSession, user_id: int | None, shader_ids: list[int]) -> set[int]:
    if user_id is None or not shader_ids:
        return set()
    result = await session.execute(
        select(Like.shader_id).where(Like.user_id == user_id, Like.shader_id.in_(shader_ids))
    )
    return set(result.scalars().all())


async def _like_count(session: AsyncSession, shader_id: int) -> int:
    result = await session.execute(select(Shader.like_count).where(Shader.id == shader_id))
    return result.scalar_one()


async def set_liked(session: AsyncSession, user_id: int, shader_id: int, liked: bool) -> dict:
    """Idempotent like/unlike. Returns the resulting ``{"liked", "likeCount"}``.

    The Like row and the counter change are committed together; the counter
    uses an in-database increment so concurrent likes of different users do
    not lose updates.
    """
    existing = await session.get(Like, (user_id, shader_id))
    if liked and existing is None:
        session.add(Like(user_id=user_id, shader_id=shader_id))
        await session.execute(
            update(Shader).where(Shader.id == shader_id).values(like_count=Shader.like_count + 1)
        )
        try:
            await session.commit()
        except IntegrityError:
            # Same user liked concurrently; the composite key kept one row
            await session.rollback()
    elif not liked and existing is not None:
        await session.delete(existing)
        await session.execute(
            update(Shader).where(Shader.id == shader_id).values(like_count=Shader.like_count - 1)
        )
        await session.commit()
    return {"liked": liked, "likeCount": await _like_count(session, shader_id)}
