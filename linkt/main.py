"""
FastAPI application for ephemeral file and text sharing.
Uploads return a 6-character code; content expires 24 hours after upload.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from linkt.cleanup import cleanup_loop, sweep
from linkt.config import Settings, get_settings
from linkt.errors import InvalidInput, ShareError, StorageFailure, Unauthorized
from linkt.expiry import expires_at, isoformat
from linkt.models import CleanupResponse, FileShareResponse, TextContentResponse, TextShareResponse
from linkt.resolver import resolve_file, resolve_text
from linkt.security import log_security_event, sanitize_filename, verify_bearer
from linkt.store import DEFAULT_CONTENT_TYPE, ShareStore
from linkt.utils.code_generator import ensure_unique_code

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Rate limiter setup
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

TEMPLATES_PATH = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=TEMPLATES_PATH)

MAX_LANGUAGE_LENGTH = 50


def build_store(config: Settings) -> ShareStore:
    return ShareStore(
        config.upload_dir,
        config.database_path,
        max_file_size=config.max_file_size,
        max_text_size=config.max_text_size,
    )


def get_store(request: Request) -> ShareStore:
    """Store attached to the app, created on first use if lifespan did not run."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        store = request.app.state.store = build_store(get_settings())
    return store


@contextlib.contextmanager
def failure_message(message: str):
    """Turn storage and unexpected errors into a StorageFailure carrying the route's message."""
    try:
        yield
    except StorageFailure as e:
        logger.error(f"{message}: {e}")
        raise StorageFailure(message) from e
    except ShareError:
        raise
    except Exception as e:
        logger.exception(message)
        raise StorageFailure(message) from e


# ============ LIFESPAN CONTEXT ============
@asynccontextmanager
async def lifespan(app):
    """Initialize the index and start the optional sweep loop."""
    store = app.state.store = build_store(settings)
    await store.init()

    if not settings.cleanup_secret:
        logger.warning("CLEANUP_SECRET is not set; the cleanup endpoint will reject every request")

    sweeper = None
    if settings.sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(cleanup_loop(store, settings.sweep_interval_seconds))
        logger.info(f"Sweeping expired shares every {settings.sweep_interval_seconds}s")

    logger.info("Linkt started successfully")
    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    logger.info("Linkt shutting down")


app = FastAPI(title="Linkt", docs_url=None, redoc_url=None, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ShareError)
async def share_error_handler(request: Request, exc: ShareError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "frame-ancestors 'none';"
        )
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}


@app.post("/api/upload", response_model=FileShareResponse)
@limiter.limit("10/minute")
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    store: ShareStore = Depends(get_store),
):
    """Store an uploaded file and return its share code."""
    if file is None:
        raise InvalidInput("No file received")

    # Reject early when the client declared the size
    if file.size is not None:
        store.check_file_size(file.size)
    data = await file.read()

    mime_type = file.content_type or DEFAULT_CONTENT_TYPE
    with failure_message("Failed to upload file"):
        code = await ensure_unique_code(store)
        stored = await store.put_file(code, data, mime_type)

    return FileShareResponse(
        share_code=code,
        file_name=sanitize_filename(file.filename),
        size=len(data),
        mime_type=mime_type,
        expires_at=isoformat(expires_at(stored.created_at)),
        download_url=f"/api/download/{code}",
    )


@app.post("/api/text", response_model=TextShareResponse)
@limiter.limit("10/minute")
async def share_text(request: Request, store: ShareStore = Depends(get_store)):
    """Store a text snippet and return its share code."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Invalid JSON")

    text = body.get("text") if isinstance(body, dict) else None
    if not text or not isinstance(text, str):
        raise InvalidInput("No text content received")

    language = body.get("language")
    if not language or not isinstance(language, str):
        language = "text"
    language = language.strip()[:MAX_LANGUAGE_LENGTH] or "text"

    store.check_text_size(text)
    with failure_message("Failed to save text"):
        code = await ensure_unique_code(store)
        stored = await store.put_text(code, text, language)

    return TextShareResponse(
        share_code=code,
        text_length=len(text),
        language=language,
        expires_at=isoformat(expires_at(stored.created_at)),
        access_url=f"/t/{code}",
    )


@app.get("/api/download/{code}")
@limiter.limit("60/minute")
async def download_file(request: Request, code: str, store: ShareStore = Depends(get_store)):
    """Stream a shared file as an attachment."""
    with failure_message("Failed to download file"):
        resolved = await resolve_file(store, code)
    # Explicit header keeps Starlette from appending a charset to text/* types
    return FileResponse(
        path=resolved.path,
        filename=resolved.filename,
        media_type=resolved.media_type,
        headers={"Content-Type": resolved.media_type},
    )


@app.get("/api/text/{code}", response_model=TextContentResponse)
@limiter.limit("60/minute")
async def fetch_text(request: Request, code: str, store: ShareStore = Depends(get_store)):
    with failure_message("Failed to access text"):
        resolved = await resolve_text(store, code)
    return TextContentResponse(
        content=resolved.content,
        language=resolved.language,
        created_at=isoformat(resolved.created_at),
        expires_at=isoformat(resolved.expires_at),
    )


@app.post("/api/cleanup", response_model=CleanupResponse)
@limiter.limit("5/minute")
async def run_cleanup(
    request: Request,
    store: ShareStore = Depends(get_store),
    config: Settings = Depends(get_settings),
):
    """Delete expired shares. Requires the maintenance bearer token."""
    if not verify_bearer(request.headers.get("authorization"), config.cleanup_secret):
        log_security_event("cleanup_unauthorized", {"client": get_remote_address(request)})
        raise Unauthorized("Unauthorized")

    with failure_message("Failed to run cleanup"):
        result = await sweep(store)

    return CleanupResponse(
        message=f"Cleanup completed. Deleted {result.deleted} of {result.total} files.",
        deleted_files=result.deleted,
        total_files=result.total,
        timestamp=isoformat(store.now()),
    )


@app.get("/t/{code}", response_class=HTMLResponse)
async def text_page(request: Request, code: str, store: ShareStore = Depends(get_store)):
    """Render a shared text snippet as a page."""
    try:
        with failure_message("Failed to access text"):
            resolved = await resolve_text(store, code)
    except ShareError as e:
        return templates.TemplateResponse(
            request, "text.html", {"error": e.message, "code": code}, status_code=e.status_code
        )
    return templates.TemplateResponse(
        request, "text.html", {"share": resolved, "expires_at": isoformat(resolved.expires_at)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
