"""Execution datatypes and enums."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

TEE_TAG = "tee"


class TaskStatus(str, Enum):
    """Lifecycle of one remote task. Terminal statuses never transition again."""

    SUBMITTED = "SUBMITTED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEDOUT = "TIMEDOUT"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_substrate(cls, name: Optional[str]) -> Optional["TaskStatus"]:
        """Map a substrate status name; None for names this flow does not track."""
        if not name:
            return None
        return _SUBSTRATE_NAMES.get(str(name).strip().upper())


_RANK = {
    TaskStatus.SUBMITTED: 0,
    TaskStatus.ACTIVE: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
    TaskStatus.TIMEDOUT: 2,
}

TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.TIMEDOUT})

_SUBSTRATE_NAMES = {
    "UNSET": TaskStatus.SUBMITTED,
    "SUBMITTED": TaskStatus.SUBMITTED,
    "ACTIVE": TaskStatus.ACTIVE,
    "REVEALING": TaskStatus.ACTIVE,
    "COMPLETED": TaskStatus.COMPLETED,
    "FAILED": TaskStatus.FAILED,
    "TIMEOUT": TaskStatus.TIMEDOUT,
    "TIMEDOUT": TaskStatus.TIMEDOUT,
}


@dataclass(frozen=True)
class ExecutionRequest:
    """One unit of remote work bound to a program and its argument string."""

    program: str
    args: str
    category: int = 0
    price_ceiling: int = 100_000_000
    tags: frozenset[str] = field(default_factory=lambda: frozenset({TEE_TAG, "scone"}))

    def __post_init__(self) -> None:
        if not self.program:
            raise ValueError("ExecutionRequest.program is required")
        if TEE_TAG not in self.tags:
            raise ValueError(f"ExecutionRequest.tags must include '{TEE_TAG}'")

    @property
    def tag_string(self) -> str:
        """Comma-joined tags, trusted-execution tag first."""
        rest = sorted(t for t in self.tags if t != TEE_TAG)
        return ",".join([TEE_TAG, *rest])


@dataclass(frozen=True)
class ExecutionHandle:
    """Correlates polling and result retrieval for a matched request."""

    deal_id: str
    task_id: str


@dataclass(frozen=True)
class StatusEvent:
    """One observation from the substrate status feed."""

    message: str
    status: Optional[str]


@dataclass(frozen=True)
class Pending:
    status: Optional[TaskStatus]
    message: str = ""


@dataclass(frozen=True)
class Terminal:
    status: TaskStatus
    message: str = ""


@dataclass(frozen=True)
class TransientError:
    message: str


@dataclass(frozen=True)
class FeedError:
    message: str
    error: Optional[Any] = None


PollOutcome = Union[Pending, Terminal, TransientError, FeedError]
