"""Secret generation backed by the operating system CSPRNG."""

from __future__ import annotations

import base64
import json
import secrets
import string
import time

from ..utils.hashing import sha256_hex
from ..utils.time import utc_now
from .types import Secret, SecretType

ALPHANUMERIC = string.ascii_uppercase + string.ascii_lowercase + string.digits
ALPHANUMERIC_SPECIAL = ALPHANUMERIC + "!@#$%^&*()_+-=[]{}|;:,.<>?"
ALPHA = string.ascii_uppercase + string.ascii_lowercase

API_KEY_LENGTH = 32
PASSWORD_LENGTH = 24
RAW_BYTES = 32


def random_string(length: int, alphabet: str = ALPHANUMERIC) -> str:
    """Uniformly random string of ``length`` characters from ``alphabet``."""
    if length < 0:
        raise ValueError("length must be non-negative")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def uuid4_string() -> str:
    """Random UUID v4 with the version nibble and RFC 4122 variant bits fixed."""
    raw = bytearray(secrets.token_bytes(16))
    raw[6] = (raw[6] & 0x0F) | 0x40
    raw[8] = (raw[8] & 0x3F) | 0x80
    h = raw.hex()
    return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _json_segment(payload: dict) -> str:
    return _b64url(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def _api_key() -> tuple[str, dict]:
    prefix = random_string(4, ALPHA).lower()
    key = random_string(API_KEY_LENGTH, ALPHANUMERIC)
    return f"{prefix}_{key}", {"format": "prefix_key", "keyLength": API_KEY_LENGTH}


def _password() -> tuple[str, dict]:
    value = random_string(PASSWORD_LENGTH, ALPHANUMERIC_SPECIAL)
    return value, {"format": "strong_password", "length": PASSWORD_LENGTH, "hasSpecialChars": True}


def _token() -> tuple[str, dict]:
    # Shaped like a JWT; the signature segment is random bytes, nothing is signed.
    header = _json_segment({"alg": "HS256", "typ": "JWT"})
    payload = _json_segment({"iat": int(time.time()), "jti": uuid4_string()})
    signature = _b64url(secrets.token_bytes(RAW_BYTES))
    return f"{header}.{payload}.{signature}", {"format": "jwt-like"}


def _uuid() -> tuple[str, dict]:
    return uuid4_string(), {"format": "uuid-v4"}


def _hex() -> tuple[str, dict]:
    return secrets.token_hex(RAW_BYTES), {"format": "hex", "bits": RAW_BYTES * 8}


def _private_key() -> tuple[str, dict]:
    return "0x" + secrets.token_hex(RAW_BYTES), {"format": "ethereum-compatible", "bits": RAW_BYTES * 8}


def _random() -> tuple[str, dict]:
    value = base64.b64encode(secrets.token_bytes(RAW_BYTES)).decode("ascii")
    return value, {"format": "base64", "bytes": RAW_BYTES}


_BUILDERS = {
    SecretType.API_KEY: _api_key,
    SecretType.PASSWORD: _password,
    SecretType.TOKEN: _token,
    SecretType.UUID: _uuid,
    SecretType.HEX: _hex,
    SecretType.PRIVATE_KEY: _private_key,
    SecretType.RANDOM: _random,
}


def generate_secret(secret_type: SecretType | str | None = SecretType.RANDOM) -> Secret:
    """Generate a secret of the given type; unknown types fall back to RANDOM."""
    kind = SecretType.parse(secret_type)
    value, metadata = _BUILDERS[kind]()
    return Secret(
        value=value,
        type=kind,
        digest=sha256_hex(value),
        generated_at=utc_now(),
        metadata=metadata,
    )
