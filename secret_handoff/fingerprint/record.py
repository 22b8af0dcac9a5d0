"""Fingerprint record model and its JSON shape."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from ..utils.hashing import normalize_digest
from ..utils.time import isoformat_utc, parse_timestamp, utc_now


@dataclass(frozen=True)
class FingerprintRecord:
    """Digest of the secret provisioned for one consumer identity."""

    consumer_identity: str
    digest: str
    recorded_at: datetime = field(default_factory=utc_now)
    reuse_count: int = 0

    def reused(self) -> "FingerprintRecord":
        """Copy with the reuse counter bumped."""
        return replace(self, reuse_count=self.reuse_count + 1)

    def to_dict(self) -> dict:
        return {
            "consumerIdentity": self.consumer_identity,
            "digest": self.digest,
            "timestamp": isoformat_utc(self.recorded_at),
            "reuseCount": self.reuse_count,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["FingerprintRecord"]:
        """Decode a record, accepting the older ``appAddress``/``secretHash`` lock format."""
        if not isinstance(data, dict):
            return None
        identity = data.get("consumerIdentity") or data.get("appAddress")
        digest = normalize_digest(data.get("digest") or data.get("secretHash"))
        if not isinstance(identity, str) or not identity.strip() or digest is None:
            return None
        recorded_at = parse_timestamp(data.get("timestamp")) or utc_now()
        raw_count = data.get("reuseCount", data.get("runCount", 0))
        try:
            reuse_count = max(0, int(raw_count or 0))
        except (TypeError, ValueError):
            reuse_count = 0
        return cls(
            consumer_identity=identity.strip(),
            digest=digest,
            recorded_at=recorded_at,
            reuse_count=reuse_count,
        )
