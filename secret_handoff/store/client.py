"""Secret store client with error classification."""

from __future__ import annotations

import logging

from ..errors import AlreadyProvisioned, InvalidIdentity, StoreUnavailable
from ..utils.identity import is_address
from .base import SecretStoreBackend

logger = logging.getLogger(__name__)

_ALREADY_EXISTS_MARKERS = ("already exists", "already_exists")


class SecretStoreClient:
    """Push secrets for a consumer identity and classify store failures."""

    def __init__(self, backend: SecretStoreBackend) -> None:
        self.backend = backend

    async def push(self, consumer_identity: str, value: str) -> bool:
        """Push ``value`` for ``consumer_identity``.

        Raises InvalidIdentity for a malformed identity, AlreadyProvisioned
        when the store refuses to overwrite, StoreUnavailable otherwise.
        """
        if not is_address(consumer_identity):
            raise InvalidIdentity(f"Invalid or missing consumer identity: {consumer_identity!r}")

        identity = consumer_identity.strip()
        logger.info("Pushing secret for %s (overwrites any existing secret)", identity)
        try:
            pushed = await self.backend.push_secret(identity, value)
        except Exception as exc:
            text = str(exc).lower()
            if any(marker in text for marker in _ALREADY_EXISTS_MARKERS):
                raise AlreadyProvisioned(f"Secret already exists for {identity}") from exc
            raise StoreUnavailable(f"Secret push for {identity} failed: {exc}") from exc

        if not pushed:
            raise StoreUnavailable(f"Secret store declined push for {identity}")
        logger.info("Secret pushed for %s", identity)
        return True
