"""
JSON record layer on top of the key-value store
"""

import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .storage import KVStore


class RecordError(Exception):
    """Raised when a stored value cannot be decoded into a record"""


def to_iso(dt: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix"""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    """Parse a timestamp written by to_iso (or any offset-aware ISO string)"""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, timezone.utc)


class PasteRecord(BaseModel):
    """Anonymous paste, keyed by its own password"""
    model_config = ConfigDict(populate_by_name=True)

    content: str
    password: str
    created_at: str = Field(alias="createdAt")
    expires_at: str = Field(alias="expiresAt")
    views: int = 0

    @classmethod
    def create(cls, content: str, password: str, now: datetime, hours: int) -> "PasteRecord":
        return cls(
            content=content,
            password=password,
            created_at=to_iso(now),
            expires_at=to_iso(now + timedelta(hours=hours)),
        )

    def is_expired(self, now: datetime) -> bool:
        return parse_iso(self.expires_at) <= now


class VaultItem(BaseModel):
    label: str
    content: str


class VaultRecord(BaseModel):
    """Admin-curated bundle, keyed by the SHA-256 of its access password"""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    items: List[VaultItem]
    created_at: str = Field(alias="createdAt")
    expires_at: Optional[str] = Field(default=None, alias="expiresAt")

    def is_expired(self, now: datetime) -> bool:
        if not self.expires_at:
            return False
        return parse_iso(self.expires_at) <= now


class RecordStore:
    """Reads and writes JSON records against a KVStore"""

    def __init__(self, kv: KVStore):
        self.kv = kv

    async def get_json(self, key: str) -> Optional[dict]:
        raw = await self.kv.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise RecordError(f"Stored value for key {key[:4]}... is not valid JSON") from e
        if not isinstance(data, dict):
            raise RecordError(f"Stored value for key {key[:4]}... is not an object")
        return data

    async def put_json(self, key: str, data: dict, ttl: Optional[int] = None) -> None:
        await self.kv.put(key, json.dumps(data), ttl=ttl)

    async def get_model(self, key: str, model: type):
        data = await self.get_json(key)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RecordError(f"Stored value for key {key[:4]}... is not a valid {model.__name__}") from e

    async def put_model(self, key: str, record: BaseModel, ttl: Optional[int] = None) -> None:
        await self.put_json(key, record.model_dump(by_alias=True), ttl=ttl)

    async def delete(self, key: str) -> None:
        await self.kv.delete(key)

    async def list_keys(self, prefix: str = "") -> List[str]:
        """Every key in the store; a full O(N) scan"""
        return await self.kv.list_keys(prefix)
