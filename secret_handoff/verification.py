"""Digest comparison between the provisioning record and the consumer's observation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VerificationReason(str, Enum):
    MATCH = "MATCH"
    MISSING_EXPECTED = "MISSING_EXPECTED"
    MISSING_OBSERVED = "MISSING_OBSERVED"
    MISMATCH = "MISMATCH"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one comparison. Lives only for the current run."""

    expected_digest: Optional[str]
    observed_digest: Optional[str]
    matched: bool
    reason: VerificationReason
    is_reuse: bool = False

    def to_dict(self) -> dict:
        return {
            "expectedDigest": self.expected_digest,
            "observedDigest": self.observed_digest,
            "matched": self.matched,
            "reason": self.reason.value,
            "isReuse": self.is_reuse,
        }


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip().lower()
    return text or None


def verify_digests(expected: Optional[str], observed: Optional[str], *, is_reuse: bool = False) -> VerificationResult:
    """Exact comparison of two hex digests (case-insensitive).

    Nothing is hashed or signed here; the result is only as trustworthy as
    the results the two digests were read from.
    """
    exp, obs = _clean(expected), _clean(observed)
    if exp is None:
        reason = VerificationReason.MISSING_EXPECTED
    elif obs is None:
        reason = VerificationReason.MISSING_OBSERVED
    elif exp != obs:
        reason = VerificationReason.MISMATCH
    else:
        reason = VerificationReason.MATCH
    return VerificationResult(
        expected_digest=exp,
        observed_digest=obs,
        matched=reason is VerificationReason.MATCH,
        reason=reason,
        is_reuse=is_reuse,
    )
