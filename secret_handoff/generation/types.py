"""Secret datatypes and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.time import isoformat_utc


class SecretType(str, Enum):
    """Closed set of secret shapes the generator knows how to build."""

    API_KEY = "api-key"
    PASSWORD = "password"
    TOKEN = "token"
    UUID = "uuid"
    HEX = "hex"
    PRIVATE_KEY = "private-key"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SecretType":
        """Map free-form input to a type; anything unrecognized becomes RANDOM."""
        if isinstance(value, SecretType):
            return value
        text = (value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.RANDOM


@dataclass(frozen=True)
class Secret:
    """A generated secret. ``value`` never leaves the process that created it."""

    value: str = field(repr=False)
    type: SecretType
    digest: str
    generated_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_public_dict(self) -> dict:
        """Serialize everything except the value."""
        return {
            "hash": self.digest,
            "type": self.type.value,
            "generatedAt": isoformat_utc(self.generated_at),
            "metadata": dict(self.metadata),
        }
