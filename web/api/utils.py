"""Shared API utilities."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

import config
from glsbox.services.file_storage import FileStorage, create_storage


class CamelModel(BaseModel):
    """Request/response body with camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


@dataclass
class Page:
    limit: int
    page: int

    @property
    def offset(self) -> int:
        return self.limit * self.page


def pagination(
    limit: int = Query(config.PAGE_DEFAULT_LIMIT, ge=1, le=config.PAGE_MAX_LIMIT),
    page: int = Query(0, ge=0),
) -> Page:
    """Dependency: ``limit``/``page`` query params (pages start at 0)."""
    return Page(limit=limit, page=page)


_storage: FileStorage | None = None


def get_file_storage() -> FileStorage:
    """Dependency: process-wide blob store, created on first use."""
    global _storage
    if _storage is None:
        _storage = create_storage()
    return _storage


async def close_file_storage() -> None:
    global _storage
    if _storage is not None:
        await _storage.close()
        _storage = None
