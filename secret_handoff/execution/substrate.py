"""Execution substrate interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from .types import ExecutionRequest, StatusEvent


class TaskNotFound(Exception):
    """The substrate does not know the task yet; polling should continue."""


class ExecutionSubstrate(ABC):
    """Remote system that matches, runs and reports on trusted executions.

    Order creation, signing and matching live behind :meth:`submit`.
    """

    @abstractmethod
    async def fetch_offers(self, *, category: int, tags: frozenset[str]) -> list[Any]:
        """Compute-provider offers compatible with ``category`` and ``tags``."""

    @abstractmethod
    async def submit(self, request: ExecutionRequest, offer: Any) -> str:
        """Match ``request`` against ``offer``; return the deal identifier."""

    @abstractmethod
    async def task_ids(self, deal_id: str) -> list[str]:
        """Task identifiers created by a deal, in index order."""

    @abstractmethod
    async def task_status(self, task_id: str) -> StatusEvent:
        """Current status of a task. Raises TaskNotFound while not queryable."""

    @abstractmethod
    async def result_location(self, task_id: str) -> Optional[str]:
        """Location of a completed task's result archive."""

    async def close(self) -> None:
        """Release substrate resources if needed."""
