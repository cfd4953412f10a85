"""Shader API routes: browse, create/update with textures, publish, like, delete."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, TypeAdapter, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

import config
from glsbox.models import Shader, ShaderTexture, TextureKind, User
from glsbox.models.base import async_session_factory
from glsbox.models.user import utcnow
from glsbox.services.file_storage import FileStorage, FileTransaction
from glsbox.services.permissions import editing_allowed
from glsbox.services.shaders import is_liked, liked_shader_ids, set_liked, set_published, shader_to_dict
from web.api.utils import CamelModel, Page, get_file_storage, pagination
from web.auth import get_current_user, require_user

logger = logging.getLogger("glsbox.api.shaders")

router = APIRouter(prefix="/api/v1/shaders", tags=["shaders"])

TIME_WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


# --- Pydantic schemas ---


class NewTextureOption(BaseModel):
    name: str
    kind: TextureKind
    file: int  # index into the uploaded "textures" files


class TextureOption(BaseModel):
    """Texture change in PATCH. With ``id``: update or delete; without: create (needs name, kind, file)."""

    id: Optional[int] = None
    file: Optional[int] = None
    name: Optional[str] = None
    kind: Optional[TextureKind] = None
    delete: bool = False


class PublishRequest(CamelModel):
    published: bool


class LikeRequest(CamelModel):
    liked: bool


def _parse_options(raw: Optional[str], adapter: TypeAdapter) -> list:
    if not raw:
        return []
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        raise HTTPException(400, "textureOptions must be valid json") from e


def _texture_data(contents: list[bytes], index: Optional[int]) -> bytes:
    if index is None or not 0 <= index < len(contents):
        raise HTTPException(400, f"Texture file {index} was not uploaded")
    return contents[index]


async def _textures(session: AsyncSession, shader_id: int) -> list[ShaderTexture]:
    result = await session.execute(
        select(ShaderTexture).where(ShaderTexture.shader_id == shader_id).order_by(ShaderTexture.id)
    )
    return list(result.scalars().all())


async def _get_shader(session: AsyncSession, shader_id: int) -> Shader:
    shader = await session.get(Shader, shader_id)
    if not shader:
        raise HTTPException(404, "Shader not found")
    return shader


# --- Browse ---


@router.get("")
async def list_shaders(
    page: Page = Depends(pagination),
    search: Optional[str] = Query(None),
    sort: str = Query("new", pattern="^(new|old|popular)$"),
    time: str = Query("all", pattern="^(day|week|month|year|all)$"),
    owner: Optional[int] = Query(None),
    viewer: Optional[User] = Depends(get_current_user),
):
    """Published shaders. The viewer's own drafts are included when ``owner`` is the viewer."""
    query = select(Shader)
    if owner is not None:
        query = query.where(Shader.owner == owner)
    if not (viewer and owner is not None and viewer.id == owner):
        query = query.where(Shader.published.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Shader.name.ilike(pattern), Shader.description.ilike(pattern)))
    if time in TIME_WINDOWS:
        query = query.where(Shader.publishing_date >= utcnow() - TIME_WINDOWS[time])
    if sort == "popular":
        query = query.order_by(Shader.like_count.desc(), Shader.id.desc())
    elif sort == "old":
        query = query.order_by(Shader.publishing_date, Shader.id)
    else:
        query = query.order_by(Shader.publishing_date.desc(), Shader.id.desc())
    async with async_session_factory() as session:
        result = await session.execute(query.limit(page.limit).offset(page.offset))
        shaders = result.scalars().all()
        liked = await liked_shader_ids(session, viewer.id if viewer else None, [s.id for s in shaders])
        return [shader_to_dict(s, liked=s.id in liked) for s in shaders]


@router.get("/{shader_id}")
async def get_shader(shader_id: int, viewer: Optional[User] = Depends(get_current_user)):
    async with async_session_factory() as session:
        shader = await _get_shader(session, shader_id)
        textures = await _textures(session, shader_id)
        liked = await is_liked(session, viewer.id if viewer else None, shader_id)
        return shader_to_dict(shader, textures, liked=liked)


# --- Create / update ---


@router.post("")
async def create_shader(
    name: Optional[str] = Form(None),
    description: str = Form(""),
    code: str = Form(""),
    texture_options: Optional[str] = Form(None, alias="textureOptions"),
    preview: Optional[UploadFile] = File(None),
    textures: list[UploadFile] = File(default=[]),
    user: User = Depends(require_user),
    storage: FileStorage = Depends(get_file_storage),
):
    """Create a shader with optional preview image and textures (multipart)."""
    if not name:
        raise HTTPException(400, "Shader must have a name")
    options = _parse_options(texture_options, TypeAdapter(list[NewTextureOption]))
    # Several options may share one uploaded file
    contents = [await f.read() for f in textures]
    for opt in options:
        _texture_data(contents, opt.file)

    async with async_session_factory() as session, FileTransaction(storage) as ftrans:
        shader = Shader(owner=user.id, name=name, description=description, code=code)
        session.add(shader)
        await session.flush()

        if preview is not None:
            fdata = await ftrans.write_file(await preview.read(), config.PREVIEW_FOLDER)
            shader.preview_url = fdata.url
            shader.preview_key = fdata.id

        for opt in options:
            fdata = await ftrans.write_file(_texture_data(contents, opt.file), config.TEXTURE_FOLDER)
            session.add(
                ShaderTexture(
                    shader_id=shader.id,
                    name=opt.name,
                    texture_kind=opt.kind,
                    url=fdata.url,
                    key=fdata.id,
                )
            )
        await session.commit()
        await ftrans.commit()
        logger.info("Shader %d created by user %d with %d texture(s)", shader.id, user.id, len(options))
        return shader_to_dict(shader, await _textures(session, shader.id))


@router.patch("/{shader_id}")
async def update_shader(
    shader_id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    code: Optional[str] = Form(None),
    delete_preview: bool = Form(False, alias="deletePreview"),
    texture_options: Optional[str] = Form(None, alias="textureOptions"),
    preview: Optional[UploadFile] = File(None),
    textures: list[UploadFile] = File(default=[]),
    user: User = Depends(require_user),
    storage: FileStorage = Depends(get_file_storage),
):
    """Partial update. Textures are added, changed or deleted per ``textureOptions``."""
    options = _parse_options(texture_options, TypeAdapter(list[TextureOption]))
    contents = [await f.read() for f in textures]

    async with async_session_factory() as session, FileTransaction(storage) as ftrans:
        shader = await _get_shader(session, shader_id)
        if not await editing_allowed(session, user, shader.owner):
            raise HTTPException(403, "You cannot edit this item")

        if name:
            shader.name = name
        if description is not None:
            shader.description = description
        if code is not None:
            shader.code = code
        if (delete_preview or preview is not None) and shader.preview_key:
            await ftrans.remove_file(shader.preview_key)
            shader.preview_url = None
            shader.preview_key = None
        if preview is not None:
            fdata = await ftrans.write_file(await preview.read(), config.PREVIEW_FOLDER)
            shader.preview_url = fdata.url
            shader.preview_key = fdata.id

        for opt in options:
            if opt.id is not None:
                tex = await session.get(ShaderTexture, opt.id)
                if not tex or tex.shader_id != shader.id:
                    raise HTTPException(404, f"Texture {opt.id} not found")
                if opt.delete:
                    await ftrans.remove_file(tex.key)
                    await session.delete(tex)
                    continue
                if opt.name:
                    tex.name = opt.name
                if opt.kind is not None:
                    tex.texture_kind = opt.kind
                if opt.file is not None:
                    data = _texture_data(contents, opt.file)
                    await ftrans.remove_file(tex.key)
                    fdata = await ftrans.write_file(data, config.TEXTURE_FOLDER)
                    tex.url = fdata.url
                    tex.key = fdata.id
            else:
                if opt.file is None or not opt.name or opt.kind is None:
                    raise HTTPException(400, "New textures need name, kind and file")
                fdata = await ftrans.write_file(_texture_data(contents, opt.file), config.TEXTURE_FOLDER)
                session.add(
                    ShaderTexture(
                        shader_id=shader.id,
                        name=opt.name,
                        texture_kind=opt.kind,
                        url=fdata.url,
                        key=fdata.id,
                    )
                )
        await session.commit()
        await ftrans.commit()
        liked = await is_liked(session, user.id, shader.id)
        return shader_to_dict(shader, await _textures(session, shader.id), liked=liked)


# --- State transitions ---


@router.patch("/{shader_id}/publish")
async def publish_shader(shader_id: int, body: PublishRequest, user: User = Depends(require_user)):
    """Publish or unpublish. Owner only."""
    async with async_session_factory() as session:
        shader = await _get_shader(session, shader_id)
        if shader.owner != user.id:
            raise HTTPException(403, "Only the owner can publish this shader")
        set_published(shader, body.published)
        await session.commit()
        return {}


@router.patch("/{shader_id}/like")
async def like_shader(shader_id: int, body: LikeRequest, user: User = Depends(require_user)):
    """Like or unlike; repeating the same call changes nothing."""
    async with async_session_factory() as session:
        await _get_shader(session, shader_id)
        return await set_liked(session, user.id, shader_id, body.liked)


@router.delete("/{shader_id}")
async def delete_shader(
    shader_id: int,
    user: User = Depends(require_user),
    storage: FileStorage = Depends(get_file_storage),
):
    """Delete a shader with its textures, comments and likes; blobs are removed after commit."""
    async with async_session_factory() as session, FileTransaction(storage) as ftrans:
        shader = await _get_shader(session, shader_id)
        if not await editing_allowed(session, user, shader.owner):
            raise HTTPException(403, "You cannot delete this item")
        for tex in await _textures(session, shader_id):
            await ftrans.remove_file(tex.key)
        if shader.preview_key:
            await ftrans.remove_file(shader.preview_key)
        await session.delete(shader)
        await session.commit()
        await ftrans.commit()
        logger.info("Shader %d deleted by user %d", shader_id, user.id)
        return {}
