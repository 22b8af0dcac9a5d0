"""Utility helpers for hashing, identities and time operations."""

from .hashing import is_sha256_hex, normalize_digest, sha256_hex
from .identity import is_address, same_identity
from .time import isoformat_utc, parse_timestamp, utc_now

__all__ = [
    "sha256_hex",
    "is_sha256_hex",
    "normalize_digest",
    "is_address",
    "same_identity",
    "utc_now",
    "isoformat_utc",
    "parse_timestamp",
]
