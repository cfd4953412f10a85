"""Pytest configuration and fixtures for API tests."""
import json
import os
import tempfile

# Set test env BEFORE any imports that use config
_tmp_dir = tempfile.mkdtemp(prefix="glsbox-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp_dir}/test.db"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["INITIAL_ADMIN_USERNAME"] = "admin"
os.environ["BOT_TOKEN"] = ""
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_PATH"] = os.path.join(_tmp_dir, "files")

import pytest
from httpx import ASGITransport, AsyncClient

from glsbox.models.base import drop_db, engine, init_db
from glsbox.services.file_storage import FileData, FileStorage, StorageError
from web.api.main import app
from web.api.utils import get_file_storage


class MemoryStorage(FileStorage):
    """In-memory blob store that records every call."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.removals: list[str] = []
        self.fail_uploads_after = None  # successful uploads allowed before failing
        self.fail_removals: set[str] = set()

    async def upload(self, data: bytes, folder: str) -> FileData:
        if self.fail_uploads_after is not None and len(self.uploads) >= self.fail_uploads_after:
            raise StorageError("upload failed")
        file_id = f"{folder}/{len(self.uploads) + 1}"
        self.uploads.append(file_id)
        self.files[file_id] = data
        return FileData(url=f"https://cdn.test/{file_id}", id=file_id)

    async def remove(self, file_id: str) -> None:
        self.removals.append(file_id)
        if file_id in self.fail_removals or file_id not in self.files:
            raise StorageError(f"cannot remove {file_id}")
        del self.files[file_id]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh schema for each test (ASGI lifespan doesn't run with httpx)."""
    await drop_db()
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture
def storage():
    """Blob store used by the API for this test."""
    memory = MemoryStorage()
    app.dependency_overrides[get_file_storage] = lambda: memory
    yield memory
    app.dependency_overrides.pop(get_file_storage, None)


@pytest.fixture
async def client(storage):
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac


async def register(client, username: str, password: str = "password1", **extra) -> tuple[dict, int]:
    """Register a user; returns (Authorization headers, user id). Leaves no session cookie behind."""
    r = await client.post(
        "/api/v1/auth/register",
        json={"username": username, "password": password, **extra},
    )
    assert r.status_code == 200, f"Register failed: {r.text}"
    client.cookies.clear()
    data = r.json()
    return {"Authorization": f"Bearer {data['accessToken']}"}, data["user"]["id"]


@pytest.fixture
async def auth_headers(client):
    """Login as admin and return Authorization headers for protected endpoints."""
    r = await client.post(
        "/api/v1/auth/login",
        json={"username": "admin", "password": "testpass123"},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    client.cookies.clear()
    token = r.json()["accessToken"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def alice(client):
    """(headers, id) of a normal user."""
    return await register(client, "alice")


@pytest.fixture
async def bob(client):
    """(headers, id) of another normal user."""
    return await register(client, "bob")


async def create_shader(client, headers, name="Test", textures=(), preview=None, **fields) -> dict:
    """POST /shaders. ``textures``: iterable of (name, kind, bytes)."""
    data = {"name": name, **fields}
    files = []
    if textures:
        options = []
        for i, (tex_name, kind, content) in enumerate(textures):
            files.append(("textures", (f"{tex_name}.png", content, "image/png")))
            options.append({"name": tex_name, "kind": kind, "file": i})
        data["textureOptions"] = json.dumps(options)
    if preview is not None:
        files.append(("preview", ("preview.png", preview, "image/png")))
    r = await client.post("/api/v1/shaders", data=data, files=files or None, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()
