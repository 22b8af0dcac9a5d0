"""Argument strings passed to the enclave programs."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from ..generation.types import SecretType

CONSUMER_HASH_REQUEST = "hash"
CONSUMER_PREVIEW_REQUEST = "preview"


@dataclass(frozen=True)
class ProducerArgs:
    consumer_identity: Optional[str]
    secret_label: str
    secret_type: SecretType


def _default_label() -> str:
    return f"secret-{int(time.time() * 1000)}"


def encode_producer_args(consumer_identity: str, secret_label: str, secret_type: SecretType | str) -> str:
    """``consumer,label,type`` as read by :func:`parse_producer_args`."""
    if "," in secret_label:
        raise ValueError("secret label must not contain commas")
    kind = SecretType.parse(secret_type) if isinstance(secret_type, str) else secret_type
    return f"{consumer_identity.strip()},{secret_label.strip()},{kind.value}"


def parse_producer_args(raw: Optional[str]) -> ProducerArgs:
    """Parse ``consumer,label,type``; a leading non-address part is read as ``label,type``."""
    text = (raw or "").strip()
    if not text:
        return ProducerArgs(None, _default_label(), SecretType.RANDOM)

    parts = [p.strip() for p in text.split(",")]
    if parts[0].startswith("0x"):
        return ProducerArgs(
            consumer_identity=parts[0],
            secret_label=(parts[1] if len(parts) > 1 and parts[1] else _default_label()),
            secret_type=SecretType.parse(parts[2] if len(parts) > 2 else None),
        )
    return ProducerArgs(
        consumer_identity=None,
        secret_label=parts[0] or _default_label(),
        secret_type=SecretType.parse(parts[1] if len(parts) > 1 else None),
    )
