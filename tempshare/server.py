#!/usr/bin/env python3
"""
TempShare - temporary content sharing with generated access passwords
"""

import logging
import time
from typing import Any, Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from . import __version__
from .config import CONFIG_FILE, DEFAULT_CONFIG, load_config, setup_logging
from .keys import generate_password
from .pages import get_share_page
from .records import PasteRecord
from .storage import KVStore
from .validation import content_size, sanitize_content, validate_password
from .web import (
    STORE_ERRORS,
    build_store,
    enforce_rate_limit,
    html_response,
    install_common,
    make_lifespan,
    now_utc,
    parse_body,
    require_json,
    store_failure,
)

logger = logging.getLogger("tempshare")

NOT_FOUND_MESSAGE = "Invalid password or content expired"


class UploadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: Optional[StrictStr] = None
    expiry_hours: Any = Field(default=None, alias="expiryHours")

    @field_validator("expiry_hours")
    @classmethod
    def normalize_expiry(cls, v):
        # Anything that is not a plain number falls back to the default later
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v


class ViewRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: Optional[StrictStr] = None


def create_app(config: Optional[dict] = None, store: Optional[KVStore] = None,
               clock: Callable[[], float] = time.time) -> FastAPI:
    """Build the paste app with explicit configuration, store and clock"""
    config = {**DEFAULT_CONFIG, **(config or {})}
    if store is None:
        store = build_store(config, clock=clock)

    app = FastAPI(title="TempShare", version=__version__, lifespan=make_lifespan("TempShare"))
    install_common(app, config, store, clock)

    @app.get("/")
    async def serve_ui():
        """Serve the upload/view page"""
        return html_response(get_share_page(config.get("site_name", "TempShare")))

    @app.post("/api/upload")
    async def upload(request: Request):
        """Store content under a freshly generated password"""
        require_json(request)
        await enforce_rate_limit(request)
        body = await parse_body(request, UploadRequest)

        if not body.content:
            raise HTTPException(status_code=400, detail="Content is required")

        max_bytes = config.get("max_content_bytes", 10 * 1024)
        if content_size(body.content) > max_bytes:
            raise HTTPException(status_code=400, detail=f"Content too large (max {max_bytes // 1024}KB)")

        content = sanitize_content(body.content)

        allowed = config.get("allowed_expiry_hours", [1, 6, 24, 168])
        hours = body.expiry_hours if body.expiry_hours in allowed else config.get("default_expiry_hours", 24)
        hours = int(hours)

        password = generate_password()
        record = PasteRecord.create(content, password, now_utc(request), hours)

        try:
            await request.app.state.records.put_model(password, record)
        except STORE_ERRORS as e:
            raise store_failure("upload", e)

        logger.info(f"Stored paste {password[:4]}... ({len(content)} chars, expires in {hours}h)")
        return {
            "success": True,
            "password": password,
            "expiresAt": record.expires_at,
            "expiresIn": hours,
        }

    @app.post("/api/view")
    async def view(request: Request):
        """Return content for a password and count the view"""
        require_json(request)
        await enforce_rate_limit(request)
        body = await parse_body(request, ViewRequest)

        password = body.password
        if not password or not validate_password(password):
            raise HTTPException(status_code=400, detail="Invalid password format")

        records = request.app.state.records
        try:
            record = await records.get_model(password, PasteRecord)
            if record is None:
                logger.info(f"View miss for {password[:4]}...")
                raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)

            if record.is_expired(now_utc(request)):
                await records.delete(password)
                logger.info(f"Deleted expired paste {password[:4]}...")
                raise HTTPException(status_code=410, detail="Content expired")

            # Not atomic: concurrent views of one paste may lose increments
            record.views += 1
            await records.put_model(password, record)
        except STORE_ERRORS as e:
            raise store_failure("view", e)

        logger.info(f"Viewed paste {password[:4]}... (views: {record.views})")
        return {
            "success": True,
            "content": record.content,
            "createdAt": record.created_at,
            "expiresAt": record.expires_at,
            "views": record.views,
        }

    return app


def main():
    setup_logging()
    config = load_config()
    app = create_app(config)
    port = config.get("port", 8787)
    print(f"Starting TempShare server on port {port}...")
    print(f"Config file: {CONFIG_FILE}")
    print(f"Persistence: {config.get('persistence')}")
    print(f"Rate limit: {config.get('rate_limit_requests')} requests per {config.get('rate_limit_window_seconds')} seconds")
    uvicorn.run(app, host=config.get("host", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
