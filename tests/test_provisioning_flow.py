import asyncio

import pytest

from fakes import (
    CONSUMER,
    D1,
    D2,
    PRODUCER,
    FakeClock,
    ScriptedSubstrate,
    consumer_document,
    make_config,
    producer_document,
)
from secret_handoff.errors import ExecutionFailed, ProvisioningError
from secret_handoff.execution import TaskStatus
from secret_handoff.fingerprint import FingerprintRecord, InMemoryFingerprintRepository
from secret_handoff.flow import build_flow
from secret_handoff.provisioning import ProvisioningState
from secret_handoff.store import InMemorySecretStore
from secret_handoff.verification import VerificationReason


def _flow(substrate: ScriptedSubstrate, repository: InMemoryFingerprintRepository, **config):
    return build_flow(
        make_config(**config),
        substrate=substrate,
        transport=substrate.transport,
        repository=repository,
        sleep=FakeClock().sleep,
    )


def test_first_run_provisions_and_matches() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["ACTIVE", "COMPLETED"], producer_document(D1))
        substrate.script(CONSUMER, ["ACTIVE", "COMPLETED"], consumer_document(D1))
        repository = InMemoryFingerprintRepository()

        report = await _flow(substrate, repository).run()

        assert report.provisioning.state is ProvisioningState.NEEDS_PROVISION
        assert report.matched is True
        assert report.verification.is_reuse is False
        assert substrate.programs_run() == [PRODUCER, CONSUMER]
        assert (await repository.load(CONSUMER)).digest == D1
        producer_args = substrate.submitted[0].args.split(",")
        assert producer_args[0] == CONSUMER
        assert producer_args[2] == "api-key"

    asyncio.run(run())


def test_rerun_reuses_record_and_skips_producer() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(CONSUMER, ["COMPLETED"], consumer_document(D1))
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])

        report = await _flow(substrate, repository).run()

        assert substrate.programs_run() == [CONSUMER]
        assert report.provisioning.state is ProvisioningState.REUSE
        assert report.matched is True
        assert report.verification.is_reuse is True
        assert (await repository.load(CONSUMER)).reuse_count == 1

    asyncio.run(run())


def test_store_drift_is_reported_as_mismatch() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(CONSUMER, ["COMPLETED"], consumer_document(D2))
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])

        report = await _flow(substrate, repository).run()

        assert report.matched is False
        assert report.verification.reason is VerificationReason.MISMATCH
        assert report.verification.expected_digest == D1
        assert report.verification.observed_digest == D2

    asyncio.run(run())


def test_producer_timeout_leaves_no_record() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["ACTIVE", "TIMEOUT"], producer_document(D1))
        repository = InMemoryFingerprintRepository()
        flow = _flow(substrate, repository)

        with pytest.raises(ExecutionFailed) as info:
            await flow.run()
        assert info.value.status is TaskStatus.TIMEDOUT
        assert repository.saves == 0
        assert substrate.programs_run() == [PRODUCER]

        state, record = await flow.coordinator.decide(CONSUMER)
        assert state is ProvisioningState.NEEDS_PROVISION
        assert record is None

    asyncio.run(run())


def test_record_for_other_consumer_does_not_count() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        other = "0xC0NSUMER-PRIME"
        substrate.script(PRODUCER, ["COMPLETED"], producer_document(D2))
        substrate.script(other, ["COMPLETED"], consumer_document(D2))
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])

        report = await _flow(substrate, repository, consumer_app=other).run()

        assert report.provisioning.state is ProvisioningState.NEEDS_PROVISION
        assert report.verification.expected_digest == D2
        assert (await repository.load(CONSUMER)).digest == D1
        assert (await repository.load(other)).digest == D2

    asyncio.run(run())


def test_failed_push_is_not_recorded() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["COMPLETED"], producer_document(D1, pushed=False))
        repository = InMemoryFingerprintRepository()

        with pytest.raises(ProvisioningError) as info:
            await _flow(substrate, repository).run()
        assert "sms down" in str(info.value)
        assert repository.saves == 0

    asyncio.run(run())


def test_producer_without_digest_is_not_recorded() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["COMPLETED"], {"success": True, "secretInfo": {"hash": "not-a-digest"}})
        repository = InMemoryFingerprintRepository()

        with pytest.raises(ProvisioningError):
            await _flow(substrate, repository).run()
        assert repository.records == {}

    asyncio.run(run())


def test_producer_legacy_digest_field_is_accepted() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["COMPLETED"], {"success": True, "generatedSecret": {"sha256": D1.upper()}})
        substrate.script(CONSUMER, ["COMPLETED"], consumer_document(D1))
        repository = InMemoryFingerprintRepository()

        report = await _flow(substrate, repository).run()

        assert report.provisioning.digest_field == "generatedSecret.sha256"
        assert report.matched is True

    asyncio.run(run())


def test_unreadable_consumer_result_is_missing_observed() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(CONSUMER, ["COMPLETED"], None)
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])

        report = await _flow(substrate, repository).run()

        assert report.matched is False
        assert report.verification.reason is VerificationReason.MISSING_OBSERVED
        assert report.consumer.observed_digest is None

    asyncio.run(run())


def test_grant_producer_access_tolerates_existing_credentials() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(CONSUMER, ["COMPLETED"], consumer_document(D1))
        store = InMemorySecretStore(allow_overwrite=False)
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])
        flow = build_flow(
            make_config(),
            substrate=substrate,
            store_backend=store,
            transport=substrate.transport,
            repository=repository,
            sleep=FakeClock().sleep,
        )

        first = await flow.run()
        second = await flow.run()

        assert first.producer_access_updated is True
        assert second.producer_access_updated is False
        assert second.matched is True
        assert '"DEDICATED_PRIVATE_KEY"' in store.read(PRODUCER)

    asyncio.run(run())


def test_unreadable_producer_result_is_not_recorded() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["COMPLETED"], None)
        repository = InMemoryFingerprintRepository()
        flow = _flow(substrate, repository)

        with pytest.raises(ProvisioningError):
            await flow.run()
        assert repository.saves == 0
        assert substrate.programs_run() == [PRODUCER]

        state, _ = await flow.coordinator.decide(CONSUMER)
        assert state is ProvisioningState.NEEDS_PROVISION

    asyncio.run(run())


def test_failed_consumer_run_does_not_count_as_reuse() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(CONSUMER, ["ACTIVE", "FAILED"])
        repository = InMemoryFingerprintRepository([FingerprintRecord(consumer_identity=CONSUMER, digest=D1)])

        with pytest.raises(ExecutionFailed):
            await _flow(substrate, repository).run()
        assert repository.saves == 0
        assert (await repository.load(CONSUMER)).reuse_count == 0

    asyncio.run(run())
