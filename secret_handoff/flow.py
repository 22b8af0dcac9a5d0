"""End-to-end run: producer access, provisioning, consumer run and digest verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import FlowConfig
from .errors import ConfigurationError
from .execution.driver import SleepCallable, TaskExecutionDriver
from .execution.substrate import ExecutionSubstrate
from .execution.types import ExecutionHandle, ExecutionRequest
from .fingerprint.storage import FingerprintRepository, create_repository_from_env
from .provisioning import ProvisioningCoordinator, ProvisioningOutcome
from .results.decoding import decode_consumer_digest, result_preview
from .results.fetcher import ResultFetcher
from .results.transport import ResultTransport
from .store.base import SecretStoreBackend
from .store.client import SecretStoreClient
from .verification import VerificationResult, verify_digests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumerObservation:
    handle: ExecutionHandle
    observed_digest: Optional[str]
    digest_field: Optional[str] = None
    preview: Optional[str] = None


@dataclass(frozen=True)
class FlowReport:
    """Everything one run learned. Holds digests only, never secret values."""

    provisioning: ProvisioningOutcome
    consumer: ConsumerObservation
    verification: VerificationResult
    producer_access_updated: Optional[bool] = None

    @property
    def matched(self) -> bool:
        return self.verification.matched

    def to_dict(self) -> dict:
        producer = self.provisioning.handle
        return {
            "consumerIdentity": self.provisioning.consumer_identity,
            "provisioningState": self.provisioning.state.value,
            "reuseCount": self.provisioning.record.reuse_count,
            "producerTask": producer.task_id if producer else None,
            "consumerTask": self.consumer.handle.task_id,
            "preview": self.consumer.preview,
            "producerAccessUpdated": self.producer_access_updated,
            "verification": self.verification.to_dict(),
        }


class SecretFlow:
    """Producer and consumer runs executed strictly one after the other."""

    def __init__(
        self,
        *,
        coordinator: ProvisioningCoordinator,
        driver: TaskExecutionDriver,
        fetcher: ResultFetcher,
        config: FlowConfig,
    ) -> None:
        self.coordinator = coordinator
        self.driver = driver
        self.fetcher = fetcher
        self.config = config

    async def run(self, *, secret_label: Optional[str] = None, grant_access: bool = True) -> FlowReport:
        consumer = self.config.consumer_app
        if not consumer:
            raise ConfigurationError(["CONSUME_APP_ADDRESS"])

        granted: Optional[bool] = None
        if grant_access and self.coordinator.store is not None:
            granted = await self.coordinator.grant_producer_access()

        outcome = await self.coordinator.provision(consumer, secret_label=secret_label)
        observation = await self.observe_consumer()
        await self.coordinator.confirm_reuse(outcome)
        verification = verify_digests(outcome.expected_digest, observation.observed_digest, is_reuse=outcome.is_reuse)

        if verification.matched:
            logger.info(
                "Digests match (%s): consumer %s holds the %s secret",
                verification.expected_digest,
                consumer,
                "original" if verification.is_reuse else "newly provisioned",
            )
        else:
            logger.warning(
                "Digest verification failed (%s): expected %s, observed %s",
                verification.reason.value,
                verification.expected_digest or "unknown",
                verification.observed_digest or "n/a",
            )
        return FlowReport(
            provisioning=outcome,
            consumer=observation,
            verification=verification,
            producer_access_updated=granted,
        )

    async def observe_consumer(self) -> ConsumerObservation:
        """Run the consumer program and read the digest it reports.

        An unreadable result leaves the observed digest unknown instead of
        failing the run; execution failures still propagate.
        """
        if not self.config.consumer_app:
            raise ConfigurationError(["CONSUME_APP_ADDRESS"])
        request = ExecutionRequest(
            program=self.config.consumer_app,
            args=self.config.consumer_args,
            category=self.config.category,
            price_ceiling=self.config.price_ceiling,
            tags=self.config.tags,
        )
        handle, location = await self.driver.run(request)
        document = await self.fetcher.fetch_or_none(location)
        if document is None:
            return ConsumerObservation(handle=handle, observed_digest=None)

        decoded = decode_consumer_digest(document)
        preview = result_preview(document)
        if preview:
            logger.info("Consumer preview: %s", preview)
        return ConsumerObservation(
            handle=handle,
            observed_digest=decoded.value if decoded else None,
            digest_field=decoded.field if decoded else None,
            preview=preview,
        )

    async def close(self) -> None:
        await self.coordinator.repository.close()
        await self.driver.substrate.close()


def build_flow(
    config: FlowConfig,
    *,
    substrate: ExecutionSubstrate,
    store_backend: Optional[SecretStoreBackend] = None,
    transport: Optional[ResultTransport] = None,
    repository: Optional[FingerprintRepository] = None,
    sleep: Optional[SleepCallable] = None,
) -> SecretFlow:
    """Wire a ready-to-run flow from config and collaborators."""
    driver = TaskExecutionDriver(substrate, config.poll, sleep=sleep)
    fetcher = ResultFetcher(config.result_gateway_url, transport)
    coordinator = ProvisioningCoordinator(
        repository=repository or create_repository_from_env(config.lock_file, config.pg_dsn),
        driver=driver,
        fetcher=fetcher,
        config=config,
        store=SecretStoreClient(store_backend) if store_backend is not None else None,
    )
    return SecretFlow(coordinator=coordinator, driver=driver, fetcher=fetcher, config=config)
