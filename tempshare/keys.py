"""
Access password generation and hashing.
"""

import hashlib
import re
import secrets
import string

ALPHABET = string.ascii_letters + string.digits
PASSWORD_LENGTH = 16

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """
    Generate a random alphanumeric password.

    Characters are drawn uniformly from the 62-character alphabet using the
    OS CSPRNG. The result doubles as the storage key; collisions are not
    checked against existing keys.
    """
    return ''.join(secrets.choice(ALPHABET) for _ in range(length))


def hash_password(password: str) -> str:
    """SHA-256 hex digest of a plaintext password"""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def is_password_hash(value) -> bool:
    return isinstance(value, str) and bool(_HASH_RE.match(value))
