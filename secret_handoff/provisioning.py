"""Provisioning coordinator: provision a secret once per consumer, then reuse its fingerprint."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import FlowConfig
from .enclave.args import encode_producer_args
from .errors import AlreadyProvisioned, ConfigurationError, ProvisioningError
from .execution.driver import TaskExecutionDriver
from .execution.types import ExecutionHandle, ExecutionRequest
from .fingerprint.record import FingerprintRecord
from .fingerprint.storage import FingerprintRepository
from .results.decoding import decode_producer_digest, producer_push_error
from .results.fetcher import ResultFetcher
from .store.client import SecretStoreClient
from .utils.identity import same_identity

logger = logging.getLogger(__name__)


class ProvisioningState(str, Enum):
    NEEDS_PROVISION = "NEEDS_PROVISION"
    REUSE = "REUSE"


@dataclass(frozen=True)
class ProvisioningOutcome:
    """Expected digest for verification and how it was obtained."""

    consumer_identity: str
    state: ProvisioningState
    record: FingerprintRecord
    handle: Optional[ExecutionHandle] = None
    digest_field: Optional[str] = None

    @property
    def expected_digest(self) -> str:
        return self.record.digest

    @property
    def is_reuse(self) -> bool:
        return self.state is ProvisioningState.REUSE


class ProvisioningCoordinator:
    """Decide between provisioning and reuse, and own the fingerprint record.

    A record is written only after the producer run returned a well-formed
    digest for a secret it reports as pushed, so an aborted run always leaves
    the next run in NEEDS_PROVISION.
    """

    def __init__(
        self,
        *,
        repository: FingerprintRepository,
        driver: TaskExecutionDriver,
        fetcher: ResultFetcher,
        config: FlowConfig,
        store: Optional[SecretStoreClient] = None,
    ) -> None:
        self.repository = repository
        self.driver = driver
        self.fetcher = fetcher
        self.config = config
        self.store = store

    async def decide(self, consumer_identity: str) -> tuple[ProvisioningState, Optional[FingerprintRecord]]:
        record = await self.repository.load(consumer_identity)
        if record is not None and same_identity(record.consumer_identity, consumer_identity):
            return ProvisioningState.REUSE, record
        return ProvisioningState.NEEDS_PROVISION, None

    async def grant_producer_access(self) -> bool:
        """Push the dedicated credential bundle as the producer program's own secret.

        Returns False when the store already holds one; the existing bundle is
        then assumed correct, which this process cannot check.
        """
        if self.store is None:
            raise ConfigurationError(["secret store"], "No secret store client configured")
        if not self.config.producer_app:
            raise ConfigurationError(["TARGET_APP_ADDRESS"])
        credentials = self.config.producer_credentials()
        try:
            await self.store.push(self.config.producer_app, credentials.to_secret_value())
        except AlreadyProvisioned:
            logger.warning(
                "Producer credentials already exist for %s; assuming they are correct "
                "(redeploy the producer app to reset them if provisioning fails)",
                self.config.producer_app,
            )
            return False
        logger.info("Producer credentials updated for %s", self.config.producer_app)
        return True

    async def provision(
        self,
        consumer_identity: Optional[str] = None,
        *,
        secret_label: Optional[str] = None,
    ) -> ProvisioningOutcome:
        """Return the expected digest for ``consumer_identity``, provisioning first if needed."""
        consumer = consumer_identity or self.config.consumer_app
        if not consumer:
            raise ConfigurationError(["CONSUME_APP_ADDRESS"])

        state, record = await self.decide(consumer)
        if state is ProvisioningState.REUSE:
            assert record is not None
            logger.info(
                "Existing secret detected for %s (digest %s); skipping provisioning",
                consumer,
                record.digest,
            )
            return ProvisioningOutcome(consumer_identity=consumer, state=state, record=record.reused())

        return await self._provision_fresh(consumer, secret_label)

    async def confirm_reuse(self, outcome: ProvisioningOutcome) -> None:
        """Persist the bumped reuse counter once the consumer run has completed."""
        if not outcome.is_reuse:
            return
        await self.repository.save(outcome.record)
        logger.info("Reuse #%d recorded for %s", outcome.record.reuse_count, outcome.consumer_identity)

    async def _provision_fresh(self, consumer: str, secret_label: Optional[str]) -> ProvisioningOutcome:
        if not self.config.producer_app:
            raise ConfigurationError(["TARGET_APP_ADDRESS"])
        label = secret_label or f"app-secret-{int(time.time() * 1000)}"
        request = ExecutionRequest(
            program=self.config.producer_app,
            args=encode_producer_args(consumer, label, self.config.secret_type),
            category=self.config.category,
            price_ceiling=self.config.price_ceiling,
            tags=self.config.tags,
        )
        logger.info("Provisioning %s secret %r for %s", self.config.secret_type.value, label, consumer)

        handle, location = await self.driver.run(request)
        document = await self.fetcher.fetch_or_none(location)
        if document is None:
            raise ProvisioningError(f"Producer task {handle.task_id} returned no readable result")

        error = producer_push_error(document)
        if error is not None:
            raise ProvisioningError(f"Producer task {handle.task_id} did not push the secret: {error}")

        decoded = decode_producer_digest(document)
        if decoded is None:
            raise ProvisioningError(f"Producer task {handle.task_id} reported no secret digest")

        record = FingerprintRecord(consumer_identity=consumer, digest=decoded.value)
        await self.repository.save(record)
        logger.info("Secret digest %s recorded for %s", record.digest, consumer)
        return ProvisioningOutcome(
            consumer_identity=consumer,
            state=ProvisioningState.NEEDS_PROVISION,
            record=record,
            handle=handle,
            digest_field=decoded.field,
        )
