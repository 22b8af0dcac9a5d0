"""In-process execution substrate that runs the enclave programs locally."""

from __future__ import annotations

import hashlib
import io
import logging
import secrets
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ..config import FlowConfig
from ..enclave.consumer import run_consumer
from ..enclave.producer import run_producer
from ..execution.substrate import ExecutionSubstrate, TaskNotFound
from ..execution.types import ExecutionRequest, StatusEvent
from ..results.transport import InMemoryTransport
from ..store.base import InMemorySecretStore

logger = logging.getLogger(__name__)

Program = Callable[[str, Path], Awaitable[Any]]


def _hex_id() -> str:
    return "0x" + secrets.token_hex(32)


def zip_directory(directory: Path) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(directory.rglob("*")):
            if path.is_file():
                zf.write(path, path.relative_to(directory).as_posix())
    return buffer.getvalue()


@dataclass
class SimulatedTask:
    task_id: str
    request: ExecutionRequest
    polls: int = 0
    status: str = "UNSET"
    location: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SimulatedSubstrate(ExecutionSubstrate):
    """Runs registered programs when their task is first seen as ACTIVE.

    Each task is "not found" for ``hidden_polls`` polls, ACTIVE for
    ``active_polls`` more, then COMPLETED (or FAILED if the program raised).
    Outputs are zipped and published on ``transport`` under ``/ipfs/<digest>``.
    """

    transport: InMemoryTransport
    gateway_url: str
    programs: dict[str, Program] = field(default_factory=dict)
    tags: frozenset[str] = field(default_factory=lambda: frozenset({"tee", "scone"}))
    hidden_polls: int = 1
    active_polls: int = 1
    deals: dict[str, list[str]] = field(default_factory=dict)
    tasks: dict[str, SimulatedTask] = field(default_factory=dict)

    def register(self, program_identity: str, program: Program) -> None:
        self.programs[program_identity.lower()] = program

    async def fetch_offers(self, *, category: int, tags: frozenset[str]) -> list[Any]:
        if not tags <= self.tags:
            return []
        return [{"workerpool": "simulated", "category": category, "tag": ",".join(sorted(self.tags))}]

    async def submit(self, request: ExecutionRequest, offer: Any) -> str:
        if request.program.lower() not in self.programs:
            raise RuntimeError(f"No app deployed at {request.program}")
        deal_id, task_id = _hex_id(), _hex_id()
        self.deals[deal_id] = [task_id]
        self.tasks[task_id] = SimulatedTask(task_id=task_id, request=request)
        return deal_id

    async def task_ids(self, deal_id: str) -> list[str]:
        return list(self.deals.get(deal_id, []))

    async def task_status(self, task_id: str) -> StatusEvent:
        task = self.tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Task not found: {task_id}")
        task.polls += 1
        if task.polls <= self.hidden_polls:
            raise TaskNotFound(f"Task not found: {task_id}")
        if task.status == "UNSET":
            task.status = "ACTIVE"
        elif task.status == "ACTIVE" and task.polls > self.hidden_polls + self.active_polls:
            await self._execute(task)
        return StatusEvent(message=f"TASK_{task.status}", status=task.status)

    async def result_location(self, task_id: str) -> Optional[str]:
        task = self.tasks.get(task_id)
        return task.location if task else None

    async def _execute(self, task: SimulatedTask) -> None:
        program = self.programs[task.request.program.lower()]
        with tempfile.TemporaryDirectory(prefix="secret-handoff-") as tmp:
            out = Path(tmp)
            try:
                await program(task.request.args, out)
            except Exception as exc:
                logger.error("Simulated program %s failed: %s", task.request.program, exc)
                task.status = "FAILED"
                task.error = str(exc)
                return
            archive = zip_directory(out)
        task.location = f"/ipfs/{hashlib.sha256(archive).hexdigest()}"
        self.transport.publish(f"{self.gateway_url.rstrip('/')}{task.location}", archive)
        task.status = "COMPLETED"


@dataclass
class Simulation:
    """A substrate, secret store and result transport wired for one config."""

    substrate: SimulatedSubstrate
    store: InMemorySecretStore
    transport: InMemoryTransport

    def drift(self, consumer_identity: str, value: str) -> None:
        """Overwrite the consumer's secret behind the flow's back."""
        self.store.replace(consumer_identity, value)


def build_simulation(config: FlowConfig, *, store: Optional[InMemorySecretStore] = None) -> Simulation:
    """Deploy the producer and consumer programs at the configured addresses."""
    store = store or InMemorySecretStore()
    transport = InMemoryTransport()
    substrate = SimulatedSubstrate(transport=transport, gateway_url=config.result_gateway_url, tags=config.tags)

    async def producer(args: str, out: Path) -> Any:
        return await run_producer(
            args,
            developer_secret=store.read(config.producer_app or ""),
            store_factory=lambda credentials: store,
            output_dir=out,
            default_consumer=config.consumer_app,
        )

    async def consumer(args: str, out: Path) -> Any:
        return run_consumer(args, secret_value=store.read(config.consumer_app or ""), output_dir=out)

    if config.producer_app:
        substrate.register(config.producer_app, producer)
    if config.consumer_app:
        substrate.register(config.consumer_app, consumer)
    return Simulation(substrate=substrate, store=store, transport=transport)
