import asyncio

import pytest

from fakes import PRODUCER, FakeClock, ScriptedSubstrate
from secret_handoff.errors import ExecutionFailed, ExecutionTimeout, NoOfferAvailable, SubmissionError
from secret_handoff.execution import (
    ExecutionHandle,
    ExecutionRequest,
    FeedError,
    Pending,
    PollSettings,
    TaskExecutionDriver,
    TaskNotFound,
    TaskStatus,
    Terminal,
    TransientError,
)


def _driver(substrate: ScriptedSubstrate, clock: FakeClock, **poll: float) -> TaskExecutionDriver:
    settings = PollSettings(**{"settle_delay": 5.0, "poll_interval": 3.0, "max_wait": 60.0, **poll})
    return TaskExecutionDriver(substrate, settings, sleep=clock.sleep, clock=clock)


def _request() -> ExecutionRequest:
    return ExecutionRequest(program=PRODUCER, args="x")


def test_request_requires_tee_tag() -> None:
    with pytest.raises(ValueError):
        ExecutionRequest(program=PRODUCER, args="", tags=frozenset({"scone"}))
    with pytest.raises(ValueError):
        ExecutionRequest(program="", args="")
    assert ExecutionRequest(program=PRODUCER, args="").tag_string == "tee,scone"


def test_substrate_status_names() -> None:
    assert TaskStatus.from_substrate("UNSET") is TaskStatus.SUBMITTED
    assert TaskStatus.from_substrate("REVEALING") is TaskStatus.ACTIVE
    assert TaskStatus.from_substrate("timeout") is TaskStatus.TIMEDOUT
    assert TaskStatus.from_substrate("CONTRIBUTED") is None
    assert TaskStatus.from_substrate(None) is None


def test_active_then_completed_returns_location() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["ACTIVE", "ACTIVE", "COMPLETED"], {"ok": True})
        clock = FakeClock()
        handle, location = await _driver(substrate, clock).run(_request())

        assert handle.task_id == "0xtask1"
        assert location == "/ipfs/0xtask1"
        assert clock.sleeps[0] == 5.0
        # interval grows by the backoff factor between polls
        assert clock.sleeps[1:] == [3.0, 4.5]

    asyncio.run(run())


def test_failed_status_raises_execution_failed() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["ACTIVE", "FAILED"])
        with pytest.raises(ExecutionFailed) as info:
            await _driver(substrate, FakeClock()).run(_request())
        assert info.value.status is TaskStatus.FAILED
        assert info.value.task_id == "0xtask1"
        assert not isinstance(info.value, ExecutionTimeout)

    asyncio.run(run())


def test_silence_raises_execution_timeout() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, ["ACTIVE"])
        clock = FakeClock()
        with pytest.raises(ExecutionTimeout) as info:
            await _driver(substrate, clock, max_wait=30.0).run(_request())
        assert info.value.status is TaskStatus.TIMEDOUT
        assert clock.now == pytest.approx(30.0)

    asyncio.run(run())


def test_not_found_is_tolerated_while_task_settles() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(
            PRODUCER,
            [TaskNotFound("task not found"), RuntimeError("Task not found on chain"), "COMPLETED"],
            {"ok": True},
        )
        _, location = await _driver(substrate, FakeClock()).run(_request())
        assert location == "/ipfs/0xtask1"

    asyncio.run(run())


def test_feed_error_is_logged_and_polling_continues(caplog: pytest.LogCaptureFixture) -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate()
        substrate.script(PRODUCER, [ConnectionError("socket closed"), "COMPLETED"], {"ok": True})
        _, location = await _driver(substrate, FakeClock()).run(_request())
        assert location == "/ipfs/0xtask1"

    with caplog.at_level("WARNING"):
        asyncio.run(run())
    assert "socket closed" in caplog.text


def test_status_regression_is_ignored() -> None:
    h = ExecutionHandle(deal_id="0xdeal", task_id="0xtask")
    current = TaskExecutionDriver._transition(h, TaskStatus.SUBMITTED, Pending(TaskStatus.ACTIVE))
    assert current is TaskStatus.ACTIVE
    current = TaskExecutionDriver._transition(h, current, Pending(TaskStatus.SUBMITTED))
    assert current is TaskStatus.ACTIVE
    current = TaskExecutionDriver._transition(h, current, TransientError("not found"))
    assert current is TaskStatus.ACTIVE
    current = TaskExecutionDriver._transition(h, current, FeedError("boom"))
    assert current is TaskStatus.ACTIVE
    current = TaskExecutionDriver._transition(h, current, Terminal(TaskStatus.COMPLETED))
    assert current is TaskStatus.COMPLETED


def test_no_offer_available() -> None:
    async def run() -> None:
        substrate = ScriptedSubstrate(offers=False)
        with pytest.raises(NoOfferAvailable):
            await _driver(substrate, FakeClock()).submit(_request())
        assert substrate.submitted == []

    asyncio.run(run())


def test_submission_failure_is_wrapped() -> None:
    class Rejecting(ScriptedSubstrate):
        async def submit(self, request, offer):
            raise RuntimeError("insufficient balance")

    async def run() -> None:
        with pytest.raises(SubmissionError) as info:
            await _driver(Rejecting(), FakeClock()).submit(_request())
        assert "insufficient balance" in str(info.value)

    asyncio.run(run())
