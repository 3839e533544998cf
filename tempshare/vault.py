#!/usr/bin/env python3
"""
TempShare Vault - admin-curated content unlocked by a shared password

Records are stored under the SHA-256 digest of their access password, so
the plaintext never reaches the store. Admin endpoints require the server's
admin secret in every request body.
"""

import logging
import secrets
import time
from typing import Any, Callable, List, Optional, Type

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from . import __version__
from .config import CONFIG_FILE, DEFAULT_CONFIG, load_config, setup_logging
from .keys import hash_password, is_password_hash
from .pages import get_admin_page, get_login_page
from .records import VaultItem, VaultRecord, parse_iso, to_iso
from .storage import KVStore
from .validation import validate_string
from .web import (
    ModelT,
    STORE_ERRORS,
    build_store,
    enforce_rate_limit,
    html_response,
    install_common,
    make_lifespan,
    now_utc,
    parse_body,
    read_json_object,
    request_client_id,
    require_json,
    store_failure,
    validate_body,
)

logger = logging.getLogger("tempshare")

MAX_PASSWORD_LENGTH = 128
MAX_TITLE_LENGTH = 200
MAX_LABEL_LENGTH = 200
MAX_ITEM_CONTENT_LENGTH = 10240
MAX_ITEMS = 50

UNAUTHORIZED_MESSAGE = "Invalid password"


class VerifyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    password: StrictStr


class ItemIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    label: StrictStr
    content: StrictStr


class AdminRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    admin_password: StrictStr = Field(alias="adminPassword")


class AddRequest(AdminRequest):
    password: StrictStr
    title: StrictStr
    items: List[ItemIn]
    expires_at: Optional[StrictStr] = Field(default=None, alias="expiresAt")

    @field_validator("expires_at")
    @classmethod
    def check_expires_at(cls, v):
        if v is None:
            return v
        try:
            return to_iso(parse_iso(v))
        except (ValueError, OverflowError):
            raise ValueError("expiresAt is not a representable ISO-8601 timestamp")


class DeleteRequest(AdminRequest):
    hash: StrictStr


def check_admin(request: Request, supplied: Any) -> None:
    """Reject the request unless the supplied secret matches the configured one"""
    expected = request.app.state.config.get("admin_password")
    client_id = request_client_id(request)
    if not expected:
        logger.error(f"Admin request from {client_id} rejected: no admin password configured")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not isinstance(supplied, str) or \
            not secrets.compare_digest(supplied.encode("utf-8"), str(expected).encode("utf-8")):
        logger.warning(f"Invalid admin password from {client_id} for {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")


def validate_add(body: AddRequest) -> None:
    if not validate_string(body.password, 1, MAX_PASSWORD_LENGTH):
        raise HTTPException(status_code=400, detail="Invalid password")
    if not validate_string(body.title.strip(), 1, MAX_TITLE_LENGTH):
        raise HTTPException(status_code=400, detail="Invalid title")
    if not body.items or len(body.items) > MAX_ITEMS:
        raise HTTPException(status_code=400, detail=f"Between 1 and {MAX_ITEMS} items are required")
    for item in body.items:
        if not validate_string(item.label.strip(), 1, MAX_LABEL_LENGTH):
            raise HTTPException(status_code=400, detail="Invalid item label")
        if not validate_string(item.content, 0, MAX_ITEM_CONTENT_LENGTH):
            raise HTTPException(status_code=400, detail="Item content too large")


async def parse_admin_body(request: Request, model: Type[ModelT]) -> ModelT:
    """Check the admin secret first, then the rest of the body against its schema"""
    body = await read_json_object(request)
    check_admin(request, body.get("adminPassword"))
    return validate_body(body, model)


def create_app(config: Optional[dict] = None, store: Optional[KVStore] = None,
               clock: Callable[[], float] = time.time) -> FastAPI:
    """Build the vault app with explicit configuration, store and clock"""
    config = {**DEFAULT_CONFIG, "site_name": "TempShare Vault", **(config or {})}
    if store is None:
        store = build_store(config, clock=clock)

    app = FastAPI(title="TempShare Vault", version=__version__, lifespan=make_lifespan("TempShare Vault"))
    install_common(app, config, store, clock)

    @app.get("/")
    async def serve_login():
        """Serve the password entry page"""
        return html_response(get_login_page(config["site_name"]))

    @app.get("/admin")
    async def serve_admin():
        """Serve the admin page"""
        return html_response(get_admin_page(config["site_name"]))

    @app.post("/api/verify")
    async def verify(request: Request):
        """Unlock a record by its plaintext password"""
        require_json(request)
        await enforce_rate_limit(request)
        body = await parse_body(request, VerifyRequest)

        if not validate_string(body.password, 1, MAX_PASSWORD_LENGTH):
            raise HTTPException(status_code=400, detail="Invalid password format")

        digest = hash_password(body.password)
        try:
            record = await request.app.state.records.get_model(digest, VaultRecord)
        except STORE_ERRORS as e:
            raise store_failure("verify", e)

        if record is None or record.is_expired(now_utc(request)):
            logger.info(f"Failed unlock from {request_client_id(request)}")
            raise HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE)

        logger.info(f"Unlocked record {digest[:8]}...")
        return {"success": True, "data": record.model_dump(by_alias=True)}

    @app.post("/api/admin/add")
    async def admin_add(request: Request):
        """Create or replace the record for a password"""
        require_json(request)
        body = await parse_admin_body(request, AddRequest)
        validate_add(body)

        digest = hash_password(body.password)
        record = VaultRecord(
            title=body.title.strip(),
            items=[VaultItem(label=item.label.strip(), content=item.content) for item in body.items],
            created_at=to_iso(now_utc(request)),
            expires_at=body.expires_at,
        )
        try:
            await request.app.state.records.put_model(digest, record)
        except STORE_ERRORS as e:
            raise store_failure("admin add", e)

        logger.info(f"Admin added record {digest[:8]}... ({len(record.items)} items)")
        return {"success": True}

    @app.post("/api/admin/delete")
    async def admin_delete(request: Request):
        """Delete a record by its hash"""
        require_json(request)
        body = await parse_admin_body(request, DeleteRequest)

        if not is_password_hash(body.hash):
            raise HTTPException(status_code=400, detail="Invalid hash")

        try:
            await request.app.state.records.delete(body.hash)
        except STORE_ERRORS as e:
            raise store_failure("admin delete", e)

        logger.warning(f"Admin deleted record {body.hash[:8]}...")
        return {"success": True}

    @app.post("/api/admin/list")
    async def admin_list(request: Request):
        """Summarize every record; scans the whole store"""
        require_json(request)
        body = await parse_admin_body(request, AdminRequest)

        records = request.app.state.records
        items = []
        try:
            for key in await records.list_keys():
                # Rate-limit counters share the namespace
                if not is_password_hash(key):
                    continue
                record = await records.get_model(key, VaultRecord)
                if record is None:
                    continue
                items.append({
                    "hash": key,
                    "title": record.title,
                    "itemCount": len(record.items),
                    "createdAt": record.created_at,
                    "expiresAt": record.expires_at,
                })
        except STORE_ERRORS as e:
            raise store_failure("admin list", e)

        logger.info(f"Admin listed {len(items)} records")
        return {"success": True, "items": items}

    return app


def main():
    setup_logging()
    config = load_config()
    app = create_app(config)
    port = config.get("port", 8787)
    if not config.get("admin_password"):
        print("Warning: no admin password configured; admin endpoints will reject every request")
    print(f"Starting TempShare Vault server on port {port}...")
    print(f"Config file: {CONFIG_FILE}")
    uvicorn.run(app, host=config.get("host", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
