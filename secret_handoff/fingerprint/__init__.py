"""Persisted fingerprint records used to skip re-provisioning."""

from .record import FingerprintRecord
from .storage import (
    FingerprintRepository,
    InMemoryFingerprintRepository,
    JsonFileFingerprintRepository,
    PostgresFingerprintRepository,
    create_repository_from_env,
)

__all__ = [
    "FingerprintRecord",
    "FingerprintRepository",
    "InMemoryFingerprintRepository",
    "JsonFileFingerprintRepository",
    "PostgresFingerprintRepository",
    "create_repository_from_env",
]
