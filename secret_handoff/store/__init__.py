"""Secret store client and backends."""

from .base import InMemorySecretStore, SecretStoreBackend
from .client import SecretStoreClient

__all__ = ["SecretStoreBackend", "InMemorySecretStore", "SecretStoreClient"]
