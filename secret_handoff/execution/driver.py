"""Task submission and the polling state machine that waits for a terminal status."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import ExecutionFailed, ExecutionTimeout, NoOfferAvailable, SecretHandoffError, SubmissionError
from .substrate import ExecutionSubstrate, TaskNotFound
from .types import (
    ExecutionHandle,
    ExecutionRequest,
    FeedError,
    Pending,
    PollOutcome,
    TaskStatus,
    Terminal,
    TransientError,
)

logger = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[None]]
ClockCallable = Callable[[], float]

_NOT_FOUND_MARKERS = ("not found", "notfound", "not_found")


@dataclass
class PollSettings:
    """Timing for one wait: settle delay, growing poll interval, overall deadline."""

    settle_delay: float = 5.0
    poll_interval: float = 3.0
    max_poll_interval: float = 15.0
    backoff: float = 1.5
    max_wait: float = 600.0


class TaskExecutionDriver:
    """Submit execution requests and poll them to completion, failure or timeout."""

    def __init__(
        self,
        substrate: ExecutionSubstrate,
        poll: Optional[PollSettings] = None,
        *,
        sleep: Optional[SleepCallable] = None,
        clock: Optional[ClockCallable] = None,
    ) -> None:
        self.substrate = substrate
        self.poll = poll or PollSettings()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or _monotonic

    async def submit(self, request: ExecutionRequest) -> ExecutionHandle:
        """Match ``request`` with the first compatible offer. Never retried."""
        try:
            offers = await self.substrate.fetch_offers(category=request.category, tags=request.tags)
        except SecretHandoffError:
            raise
        except Exception as exc:
            raise SubmissionError(f"Could not fetch offers for {request.program}: {exc}") from exc
        if not offers:
            raise NoOfferAvailable(
                f"No offer available for category {request.category} with tags {request.tag_string}"
            )

        try:
            deal_id = await self.substrate.submit(request, offers[0])
            task_ids = await self.substrate.task_ids(deal_id)
        except SecretHandoffError:
            raise
        except Exception as exc:
            raise SubmissionError(f"Submission of {request.program} failed: {exc}") from exc
        if not task_ids:
            raise SubmissionError(f"Deal {deal_id} has no task")

        handle = ExecutionHandle(deal_id=deal_id, task_id=task_ids[0])
        logger.info("Deal %s created for %s, task %s", deal_id, request.program, handle.task_id)
        return handle

    async def poll_once(self, task_id: str) -> PollOutcome:
        """Query the status feed once and classify the observation."""
        try:
            event = await self.substrate.task_status(task_id)
        except TaskNotFound as exc:
            return TransientError(str(exc) or "task not found")
        except Exception as exc:
            message = str(exc)
            if any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
                return TransientError(message)
            return FeedError(message or type(exc).__name__, exc)

        status = TaskStatus.from_substrate(event.status)
        if status is not None and status.is_terminal:
            return Terminal(status, event.message)
        return Pending(status, event.message)

    async def wait(
        self,
        handle: ExecutionHandle,
        *,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
    ) -> Optional[str]:
        """Block until the task is terminal; return its result location.

        Raises ExecutionFailed on FAILED/TIMEDOUT and ExecutionTimeout when
        ``max_wait`` elapses without a terminal status.
        """
        limit = self.poll.max_wait if max_wait is None else max_wait
        interval = self.poll.poll_interval if poll_interval is None else poll_interval
        deadline = self._clock() + limit
        short_id = handle.task_id[:10]

        logger.info("Waiting for task %s...", short_id)
        # The task is not queryable right after the deal is created.
        await self._sleep(max(0.0, min(self.poll.settle_delay, limit)))

        current = TaskStatus.SUBMITTED
        while True:
            outcome = await self.poll_once(handle.task_id)
            current = self._transition(handle, current, outcome)
            if current.is_terminal:
                break

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ExecutionTimeout(
                    TaskStatus.TIMEDOUT,
                    handle.task_id,
                    f"Task {handle.task_id} not terminal after {limit:.0f}s (last status {current.value})",
                )
            await self._sleep(min(interval, remaining))
            interval = min(interval * self.poll.backoff, self.poll.max_poll_interval)

        if current is not TaskStatus.COMPLETED:
            raise ExecutionFailed(current, handle.task_id)
        location = await self.substrate.result_location(handle.task_id)
        logger.info("Task %s completed, result at %s", short_id, location)
        return location

    async def run(self, request: ExecutionRequest, **wait_kwargs: float) -> tuple[ExecutionHandle, Optional[str]]:
        """Submit then wait."""
        handle = await self.submit(request)
        location = await self.wait(handle, **wait_kwargs)
        return handle, location

    @staticmethod
    def _transition(handle: ExecutionHandle, current: TaskStatus, outcome: PollOutcome) -> TaskStatus:
        """Apply one poll outcome to the current status.

        Pending        -> advance if the status ranks higher, else keep
        TransientError -> keep (task not queryable yet)
        FeedError      -> keep, logged
        Terminal       -> the terminal status
        """
        if isinstance(outcome, Terminal):
            logger.info("Task %s: %s", handle.task_id[:10], outcome.message or outcome.status.value)
            return outcome.status
        if isinstance(outcome, Pending):
            if outcome.status is not None and outcome.status.rank > current.rank:
                logger.debug("Task %s: %s -> %s", handle.task_id[:10], current.value, outcome.status.value)
                return outcome.status
            return current
        if isinstance(outcome, TransientError):
            logger.debug("Task %s not queryable yet: %s", handle.task_id[:10], outcome.message)
            return current
        logger.warning("Polling warning for task %s: %s", handle.task_id[:10], outcome.message)
        return current


def _monotonic() -> float:
    return asyncio.get_running_loop().time()
