"""Remote execution submission and status polling."""

from .driver import PollSettings, TaskExecutionDriver
from .substrate import ExecutionSubstrate, TaskNotFound
from .types import (
    TERMINAL_STATUSES,
    ExecutionHandle,
    ExecutionRequest,
    FeedError,
    Pending,
    PollOutcome,
    StatusEvent,
    TaskStatus,
    Terminal,
    TransientError,
)

__all__ = [
    "PollSettings",
    "TaskExecutionDriver",
    "ExecutionSubstrate",
    "TaskNotFound",
    "TERMINAL_STATUSES",
    "ExecutionHandle",
    "ExecutionRequest",
    "FeedError",
    "Pending",
    "PollOutcome",
    "StatusEvent",
    "TaskStatus",
    "Terminal",
    "TransientError",
]
