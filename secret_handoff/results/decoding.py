"""Digest decoding for producer and consumer result documents.

Current producers report ``secretInfo.hash`` and consumers ``hashes.sha256``.
Older builds of both reported ``generatedSecret.sha256``; that field is read
only as an explicit fallback and the field used is returned to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..utils.hashing import normalize_digest

logger = logging.getLogger(__name__)

PRODUCER_DIGEST_FIELDS = ("secretInfo.hash",)
CONSUMER_DIGEST_FIELDS = ("hashes.sha256",)
LEGACY_DIGEST_FIELDS = ("generatedSecret.sha256",)


@dataclass(frozen=True)
class DecodedDigest:
    value: str
    field: str

    @property
    def legacy(self) -> bool:
        return self.field in LEGACY_DIGEST_FIELDS


def _lookup(document: Any, dotted: str) -> Any:
    node = document
    for part in dotted.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _decode(document: Any, primary: Sequence[str]) -> Optional[DecodedDigest]:
    for field in (*primary, *LEGACY_DIGEST_FIELDS):
        raw = _lookup(document, field)
        if raw is None:
            continue
        digest = normalize_digest(raw)
        if digest is None:
            logger.warning("Ignoring malformed digest in %s: %r", field, raw)
            continue
        if field in LEGACY_DIGEST_FIELDS:
            logger.info("Digest read from legacy field %s", field)
        return DecodedDigest(value=digest, field=field)
    return None


def decode_producer_digest(document: Any) -> Optional[DecodedDigest]:
    """Digest reported by the producer program."""
    return _decode(document, PRODUCER_DIGEST_FIELDS)


def decode_consumer_digest(document: Any) -> Optional[DecodedDigest]:
    """Digest observed by the consumer program."""
    return _decode(document, CONSUMER_DIGEST_FIELDS)


def producer_push_error(document: Any) -> Optional[str]:
    """Error text when the producer explicitly reports a failed store push, else None."""
    pushed = _lookup(document, "smsInfo.pushed")
    if pushed is None:
        pushed = _lookup(document, "success")
    if pushed is not False:
        return None
    error = _lookup(document, "smsInfo.error") or _lookup(document, "error")
    return str(error) if error else "unknown error"


def result_preview(document: Any) -> Optional[str]:
    value = _lookup(document, "preview")
    return value if isinstance(value, str) and value else None
