"""
Pieces shared by the paste and vault apps: headers, error rendering,
request body parsing, store wiring and the cleanup thread.
"""

import logging
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Type, TypeVar

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import MASTER_KEY_FILE
from .ratelimit import RATE_LIMIT_KEY_PREFIX, FixedWindowRateLimiter, get_client_id
from .records import RecordError, RecordStore, from_epoch
from .storage import KVStore, MemoryKVStore, SnapshotCipher, StoreError
from .validation import validate_content_type

logger = logging.getLogger("tempshare")

SECURITY_HEADERS = {
    'Content-Security-Policy': "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; img-src 'self' data: https:; font-src 'self' data:; connect-src 'self'; frame-ancestors 'none';",
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'X-XSS-Protection': '1; mode=block',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
}

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}

SERVER_ERROR = "Server error"

STORE_ERRORS = (StoreError, RecordError)

ModelT = TypeVar("ModelT", bound=BaseModel)


def html_response(html: str) -> HTMLResponse:
    """HTML page that browsers must not cache"""
    return HTMLResponse(html, headers=NO_CACHE_HEADERS)


def build_store(config: dict, clock: Callable[[], float] = time.time) -> MemoryKVStore:
    """Create the KV store described by the config"""
    if config.get("persistence"):
        cipher = SnapshotCipher(Path(config.get("master_key_file", MASTER_KEY_FILE)))
        return MemoryKVStore(Path(config["store_file"]), cipher, clock=clock,
                             transient_prefixes=(RATE_LIMIT_KEY_PREFIX,))
    return MemoryKVStore(clock=clock)


def _cleanup_task(store: KVStore, interval_seconds: float, stop: threading.Event) -> None:
    """Periodically drop TTL-expired keys from the store"""
    while not stop.wait(interval_seconds):
        try:
            removed = store.purge_expired()
            if removed:
                logger.info(f"Cleanup task: purged {removed} expired keys")
        except StoreError as e:
            logger.error(f"Error in cleanup task: {e}")


def make_lifespan(name: str):
    """Lifespan that logs startup and runs the cleanup thread when the store supports it"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = app.state.config
        logger.info("=" * 60)
        logger.info(f"{name} server starting")
        logger.info(f"Persistence: {config.get('persistence')}")
        logger.info("=" * 60)

        stop = threading.Event()
        interval = config.get("cleanup_interval_minutes") or 0
        if interval > 0 and hasattr(app.state.kv, "purge_expired"):
            thread = threading.Thread(
                target=_cleanup_task, args=(app.state.kv, interval * 60, stop), daemon=True
            )
            thread.start()
        try:
            yield
        finally:
            stop.set()
            logger.info(f"{name} server stopped")

    return lifespan


def install_common(app: FastAPI, config: dict, kv: KVStore, clock: Callable[[], float]) -> None:
    """Attach injected state, security headers and JSON error rendering to an app"""
    app.state.config = config
    app.state.kv = kv
    app.state.clock = clock
    app.state.records = RecordStore(kv)
    app.state.rate_limiter = FixedWindowRateLimiter(
        app.state.records,
        max_requests=config.get("rate_limit_requests", 10),
        window_seconds=config.get("rate_limit_window_seconds", 60),
        clock=clock,
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"success": False, "message": exc.detail},
            status_code=exc.status_code,
            headers=SECURITY_HEADERS,
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
        return JSONResponse(
            {"success": False, "message": SERVER_ERROR},
            status_code=500,
            headers=SECURITY_HEADERS,
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok"}


def require_json(request: Request) -> None:
    if not validate_content_type(request.headers.get("content-type")):
        raise HTTPException(status_code=400, detail="Invalid Content-Type")


def request_client_id(request: Request) -> str:
    config = request.app.state.config
    return get_client_id(request, config.get("client_ip_header", "X-Forwarded-For"))


async def enforce_rate_limit(request: Request) -> None:
    client_id = request_client_id(request)
    if not await request.app.state.rate_limiter.is_allowed(client_id):
        logger.warning(f"Rate limit exceeded for {client_id} on {request.url.path}")
        raise HTTPException(status_code=429, detail="Too many requests, please try again later")


async def read_json_object(request: Request) -> dict:
    """Decode the JSON body, which must be an object"""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid request body")
    return body


def validate_body(body: dict, model: Type[ModelT]) -> ModelT:
    try:
        return model.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "body" for err in e.errors())
        raise HTTPException(status_code=400, detail=f"Invalid request body: {fields}")


async def parse_body(request: Request, model: Type[ModelT]) -> ModelT:
    """Decode the JSON body and check it against a request schema"""
    return validate_body(await read_json_object(request), model)


def store_failure(action: str, exc: Exception) -> HTTPException:
    """Log a store fault and build the generic 500 sent to the caller"""
    logger.error(f"Store failure during {action}: {exc!r}")
    return HTTPException(status_code=500, detail=SERVER_ERROR)


def now_utc(request: Request):
    """Current time from the injected clock"""
    return from_epoch(request.app.state.clock())
