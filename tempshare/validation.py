"""
Input validation and content sanitization
"""

import re
from typing import Optional

from .keys import PASSWORD_LENGTH

_ALNUM_RE = re.compile(r"^[A-Za-z0-9]+$")

# Control characters except tab (0x09) and newline (0x0A)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_string(value, min_length: int = 0, max_length: int = 10240) -> bool:
    """Check that value is a str with length in [min_length, max_length]"""
    if not isinstance(value, str):
        return False
    return min_length <= len(value) <= max_length


def validate_token(token) -> bool:
    """Check a 16-character alphanumeric token"""
    if not validate_string(token, PASSWORD_LENGTH, PASSWORD_LENGTH):
        return False
    return bool(_ALNUM_RE.match(token))


def validate_password(password) -> bool:
    """Check a 16-character alphanumeric access password"""
    return validate_token(password)


def validate_content_type(content_type: Optional[str]) -> bool:
    """Check that a declared Content-Type is JSON"""
    if not content_type:
        return False
    return "application/json" in content_type


def sanitize_content(content: str) -> str:
    """Strip control characters, keeping newlines and tabs"""
    return _CONTROL_CHARS_RE.sub('', content)


def content_size(content: str) -> int:
    """Size of content in UTF-8 bytes"""
    return len(content.encode("utf-8"))


def escape_html(unsafe) -> str:
    """Escape HTML special characters"""
    if not isinstance(unsafe, str):
        return ''
    return (
        unsafe.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#039;")
    )
