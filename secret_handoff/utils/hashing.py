"""Digest helpers."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Optional

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


def sha256_hex(value: str) -> str:
    """Return SHA-256 hex digest for the provided string value."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def is_sha256_hex(value: Any) -> bool:
    """True when value is a 64 character hex digest (any case)."""
    return isinstance(value, str) and bool(_SHA256_RE.match(value.strip().lower()))


def normalize_digest(value: Any) -> Optional[str]:
    """Lowercase a well-formed digest, or return None."""
    if not is_sha256_hex(value):
        return None
    return value.strip().lower()
