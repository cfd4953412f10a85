"""Blob storage for shader previews and textures, with staged transactions."""
from __future__ import annotations

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

import config

logger = logging.getLogger("glsbox.storage")


class StorageError(Exception):
    """Blob store rejected an upload or removal."""


@dataclass(frozen=True)
class FileData:
    """Uploaded blob: public URL and store id (used for removal)."""

    url: str
    id: str


class FileStorage:
    """Blob store interface."""

    async def upload(self, data: bytes, folder: str) -> FileData:
        raise NotImplementedError

    async def remove(self, file_id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LocalFileStorage(FileStorage):
    """Stores blobs on the local filesystem under ``root/<folder>/<uuid>``."""

    def __init__(self, root: str | Path, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, file_id: str) -> Path:
        path = (self.root / file_id).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Invalid file id: {file_id}")
        return path

    async def upload(self, data: bytes, folder: str) -> FileData:
        file_id = f"{folder}/{uuid.uuid4().hex}"
        path = self._path(file_id)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        return FileData(url=f"{self.base_url}/{file_id}", id=file_id)

    async def remove(self, file_id: str) -> None:
        await asyncio.to_thread(self._path(file_id).unlink)


class CloudinaryStorage(FileStorage):
    """Cloudinary image storage through the official SDK."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str):
        cloudinary.config(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret, secure=True)

    async def upload(self, data: bytes, folder: str) -> FileData:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload, io.BytesIO(data), folder=folder, resource_type="image"
            )
        except cloudinary.exceptions.Error as e:
            raise StorageError(f"Cloudinary upload failed: {e}") from e
        return FileData(url=result.get("secure_url") or result["url"], id=result["public_id"])

    async def remove(self, file_id: str) -> None:
        try:
            result = await asyncio.to_thread(cloudinary.uploader.destroy, file_id)
        except cloudinary.exceptions.Error as e:
            raise StorageError(f"Cloudinary destroy failed for {file_id}: {e}") from e
        if result.get("result") not in ("ok", "not found"):
            raise StorageError(f"Cloudinary destroy failed for {file_id}: {result}")


def create_storage() -> FileStorage:
    """Build the blob store selected by STORAGE_BACKEND."""
    if config.STORAGE_BACKEND == "cloudinary":
        if not (config.CLOUDINARY_CLOUD_NAME and config.CLOUDINARY_API_KEY and config.CLOUDINARY_API_SECRET):
            raise ValueError("CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET are required")
        return CloudinaryStorage(
            config.CLOUDINARY_CLOUD_NAME,
            config.CLOUDINARY_API_KEY,
            config.CLOUDINARY_API_SECRET,
        )
    if config.STORAGE_BACKEND != "local":
        raise ValueError(f"Unknown STORAGE_BACKEND: {config.STORAGE_BACKEND}")
    return LocalFileStorage(config.STORAGE_PATH, config.STORAGE_BASE_URL)


class FileTransaction:
    """Stages blob uploads/removals alongside a relational transaction.

    Uploads happen immediately and are undone by ``rollback``; removals are
    deferred until ``commit``. Commit the relational transaction first, then
    this one. Individual blob failures in commit/rollback are logged, not
    raised. Not safe to share between requests.
    """

    def __init__(self, storage: FileStorage):
        self._storage = storage
        self._done = False
        self.uploaded: list[str] = []
        self.removed: list[str] = []

    @property
    def done(self) -> bool:
        return self._done

    async def write_file(self, data: bytes, folder: str) -> FileData:
        logger.info("Writing file to folder %s", folder)
        file_data = await self._storage.upload(data, folder)
        self.uploaded.append(file_data.id)
        return file_data

    async def remove_file(self, file_id: str) -> None:
        logger.info("Removing file %s", file_id)
        self.removed.append(file_id)

    async def _remove_all(self, file_ids: list[str], stage: str) -> None:
        results = await asyncio.gather(
            *(self._storage.remove(file_id) for file_id in file_ids),
            return_exceptions=True,
        )
        for file_id, result in zip(file_ids, results):
            if isinstance(result, Exception):
                logger.error("%s: failed to remove file %s: %s", stage, file_id, result)

    async def commit(self) -> None:
        if self._done:
            return
        logger.info("Committing file transaction")
        await self._remove_all(self.removed, "Commit")
        self._done = True

    async def rollback(self) -> None:
        if self._done:
            return
        logger.info("Rolling back file transaction")
        await self._remove_all(self.uploaded, "Rollback")
        self._done = True

    async def __aenter__(self) -> FileTransaction:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()
