"""FastAPI GLSBox API - serves the REST API, stored files and the built web UI."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

import config
from glsbox.models.base import init_db

from web.api.auth_routes import router as auth_router
from web.api.comment_routes import router as comment_router
from web.api.shader_routes import router as shader_router
from web.api.user_routes import router as user_router
from web.api.utils import close_file_storage

logger = logging.getLogger("glsbox.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_file_storage()


app = FastAPI(title="GLSBox API", lifespan=lifespan)


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse({"error": True, "message": message}, status_code=status_code, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error_response(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form"))
    message = first.get("msg", "Invalid request")
    return error_response(400, f"{field}: {message}" if field else message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


# SPA fallback: serve index.html for non-API 404s so client-side routes work
_frontend_dist = Path(__file__).resolve().parent.parent.parent / "frontend" / "dist"


class SPAFallbackMiddleware(BaseHTTPMiddleware):
    """Serve index.html for 404s on non-API paths (enables /view/1, /users/2, etc.)."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if response.status_code == 404 and not request.url.path.startswith(("/api", "/files")):
            index_path = _frontend_dist / "index.html"
            if index_path.exists():
                return FileResponse(str(index_path), media_type="text/html")
        return response


if _frontend_dist.exists():
    app.add_middleware(SPAFallbackMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(shader_router)
app.include_router(comment_router)
app.include_router(user_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# Blobs written by LocalFileStorage
if config.STORAGE_BACKEND == "local" and config.STORAGE_BASE_URL.startswith("/"):
    app.mount(config.STORAGE_BASE_URL, StaticFiles(directory=config.STORAGE_PATH, check_dir=False), name="files")

# Serve built frontend (SPA fallback handled by SPAFallbackMiddleware above)
if _frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(_frontend_dist), html=True), name="frontend")
