"""
Key-value storage backing all TempShare records
"""

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger("tempshare")


class StoreError(Exception):
    """Raised when the key-value store cannot complete an operation"""


class SnapshotCipher:
    """
    Seals the store snapshot with a Fernet master key kept beside it.

    The key file is created with 0600 permissions the first time it is
    needed and reused on every later start.
    """

    def __init__(self, key_file: Path):
        self.key_file = Path(key_file)
        self._fernet = Fernet(self._master_key())

    def _master_key(self) -> bytes:
        try:
            return self.key_file.read_bytes().strip()
        except FileNotFoundError:
            pass
        key = Fernet.generate_key()
        self.key_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.key_file, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(key)
        logger.info(f"Created master key at {self.key_file}")
        return key

    def seal(self, snapshot: Dict[str, Any]) -> bytes:
        return self._fernet.encrypt(json.dumps(snapshot).encode("utf-8"))

    def unseal(self, token: bytes) -> Dict[str, Any]:
        snapshot = json.loads(self._fernet.decrypt(token).decode("utf-8"))
        if not isinstance(snapshot, dict):
            raise ValueError("snapshot is not a mapping")
        return snapshot


class KVStore:
    """
    Durable string map with optional per-key expiration.

    Every operation is a coroutine so handlers await store round trips the
    same way regardless of backend.
    """

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def list_keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError


Entry = Tuple[str, Optional[float]]


class MemoryKVStore(KVStore):
    """
    In-process KV store with TTL support.

    When a backup file and a SnapshotCipher are given, the map is written as
    one encrypted JSON snapshot after each mutation and reloaded on startup.
    Keys under a transient prefix live in memory only: they are left out of
    the snapshot and changing them never rewrites it. Expired keys are
    dropped lazily on read and by purge_expired().
    """

    def __init__(self, backup_file: Optional[Path] = None,
                 cipher: Optional[SnapshotCipher] = None,
                 clock: Callable[[], float] = time.time,
                 transient_prefixes: Iterable[str] = ()):
        self.backup_file = Path(backup_file) if backup_file else None
        self.cipher = cipher
        self.clock = clock
        self.transient_prefixes = tuple(transient_prefixes)
        # key -> (value, expires_at epoch seconds or None)
        self.data: Dict[str, Entry] = {}
        self._lock = threading.Lock()
        self.load_from_backup()

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= self.clock()

    def is_transient(self, key: str) -> bool:
        return bool(self.transient_prefixes) and key.startswith(self.transient_prefixes)

    def _persist_or_restore(self, previous: Dict[str, Optional[Entry]]) -> None:
        """Write the snapshot; on failure put every touched key back as it was"""
        if all(self.is_transient(key) for key in previous):
            return
        try:
            self.save_to_backup()
        except StoreError:
            for key, entry in previous.items():
                if entry is None:
                    self.data.pop(key, None)
                else:
                    self.data[key] = entry
            raise

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self.data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._is_expired(expires_at):
                del self.data[key]
                return None
            return value

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if not isinstance(value, str):
            raise StoreError(f"Values must be strings, got {type(value).__name__}")
        expires_at = self.clock() + ttl if ttl else None
        with self._lock:
            previous = {key: self.data.get(key)}
            self.data[key] = (value, expires_at)
            self._persist_or_restore(previous)

    async def delete(self, key: str) -> None:
        with self._lock:
            entry = self.data.pop(key, None)
            if entry is not None:
                self._persist_or_restore({key: entry})

    async def list_keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [
                key for key, (_, expires_at) in self.data.items()
                if key.startswith(prefix) and not self._is_expired(expires_at)
            ]

    def purge_expired(self) -> int:
        """Drop every key whose TTL has passed, returning how many were removed"""
        with self._lock:
            expired = {
                key: entry for key, entry in self.data.items()
                if self._is_expired(entry[1])
            }
            for key in expired:
                del self.data[key]
            if expired:
                self._persist_or_restore(expired)
        return len(expired)

    def save_to_backup(self) -> None:
        """Write the encrypted snapshot to disk; caller holds the lock"""
        if self.backup_file is None or self.cipher is None:
            return
        snapshot = {
            key: [value, expires_at] for key, (value, expires_at) in self.data.items()
            if not self.is_transient(key)
        }
        try:
            self.backup_file.parent.mkdir(parents=True, exist_ok=True)
            sealed = self.cipher.seal(snapshot)

            tmp_file = self.backup_file.with_suffix(self.backup_file.suffix + ".tmp")
            with open(tmp_file, 'wb') as f:
                f.write(sealed)
            os.chmod(tmp_file, 0o600)
            os.replace(tmp_file, self.backup_file)
        except OSError as e:
            logger.error(f"Failed to save store snapshot to {self.backup_file}: {e}")
            raise StoreError("Failed to persist store") from e

    def load_from_backup(self) -> None:
        """Load and decrypt the snapshot if it exists"""
        if self.backup_file is None or self.cipher is None or not self.backup_file.exists():
            return
        try:
            snapshot = self.cipher.unseal(self.backup_file.read_bytes())
            self.data = {
                key: (value, expires_at) for key, (value, expires_at) in snapshot.items()
                if not self.is_transient(key)
            }
            logger.info(f"Loaded {len(self.data)} keys from {self.backup_file}")
        except (OSError, InvalidToken, ValueError, TypeError) as e:
            logger.warning(f"Failed to load store snapshot: {e}. Starting with empty store.")
            self.data = {}
