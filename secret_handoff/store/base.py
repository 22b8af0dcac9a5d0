"""Secret store backend interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class SecretStoreBackend(ABC):
    """Remote store binding one secret value to one consumer identity.

    Implementations authenticate with a dedicated credential, not with the
    operator wallet. A push overwrites whatever was bound before; the store
    keeps no history.
    """

    @abstractmethod
    async def push_secret(self, identity: str, value: str) -> bool:
        """Bind ``value`` to ``identity``; return False if the store declined."""


class InMemorySecretStore(SecretStoreBackend):
    """In-memory store used by tests and the local simulation."""

    def __init__(self, *, allow_overwrite: bool = True) -> None:
        self.allow_overwrite = allow_overwrite
        self._values: dict[str, str] = {}
        self.push_count = 0

    async def push_secret(self, identity: str, value: str) -> bool:
        key = identity.lower()
        if key in self._values and not self.allow_overwrite:
            raise RuntimeError(f"Secret already exists for {identity}")
        self._values[key] = value
        self.push_count += 1
        return True

    def read(self, identity: str) -> Optional[str]:
        """Return the bound value, as an authorized consumer would see it."""
        return self._values.get(identity.lower())

    def exists(self, identity: str) -> bool:
        return identity.lower() in self._values

    def replace(self, identity: str, value: str) -> None:
        """Bind directly, bypassing the overwrite policy."""
        self._values[identity.lower()] = value
