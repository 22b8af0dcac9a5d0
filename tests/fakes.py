import io
import json
import zipfile
from typing import Any, Optional, Union

from secret_handoff.config import FlowConfig
from secret_handoff.execution.driver import PollSettings
from secret_handoff.execution.substrate import ExecutionSubstrate
from secret_handoff.execution.types import ExecutionRequest, StatusEvent
from secret_handoff.results.transport import InMemoryTransport

GATEWAY = "https://gateway.test"
PRODUCER = "0x" + "a" * 40
CONSUMER = "0xC0NSUMER"

D1 = "1" * 64
D2 = "2" * 64

Step = Union[str, Exception]


def make_archive(document: Any, member: str = "result.json") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(member, json.dumps(document))
        zf.writestr("computed.json", json.dumps({"deterministic-output-path": "/iexec_out/" + member}))
    return buffer.getvalue()


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedSubstrate(ExecutionSubstrate):
    """Each program replays a list of poll steps; the last step repeats.

    A step is a status name or an exception raised from ``task_status``.
    Completed tasks publish their scripted document on ``transport``.
    """

    def __init__(self, *, offers: bool = True) -> None:
        self.offers = offers
        self.transport = InMemoryTransport()
        self.scripts: dict[str, list[Step]] = {}
        self.documents: dict[str, Optional[Any]] = {}
        self.submitted: list[ExecutionRequest] = []
        self.tasks: dict[str, dict] = {}

    def script(self, program: str, steps: list[Step], document: Optional[Any] = None) -> None:
        self.scripts[program.lower()] = list(steps)
        self.documents[program.lower()] = document

    async def fetch_offers(self, *, category: int, tags: frozenset[str]) -> list[Any]:
        return [{"category": category}] if self.offers else []

    async def submit(self, request: ExecutionRequest, offer: Any) -> str:
        self.submitted.append(request)
        n = len(self.submitted)
        deal_id, task_id = f"0xdeal{n}", f"0xtask{n}"
        self.tasks[task_id] = {"program": request.program.lower(), "polls": 0}
        return deal_id

    async def task_ids(self, deal_id: str) -> list[str]:
        return [deal_id.replace("deal", "task")]

    async def task_status(self, task_id: str) -> StatusEvent:
        task = self.tasks[task_id]
        steps = self.scripts[task["program"]]
        step = steps[min(task["polls"], len(steps) - 1)]
        task["polls"] += 1
        if isinstance(step, Exception):
            raise step
        return StatusEvent(message=f"TASK_{step}", status=step)

    async def result_location(self, task_id: str) -> Optional[str]:
        document = self.documents[self.tasks[task_id]["program"]]
        location = f"/ipfs/{task_id}"
        if document is not None:
            self.transport.publish(GATEWAY + location, make_archive(document))
        return location

    def programs_run(self) -> list[str]:
        return [r.program for r in self.submitted]


def make_config(**overrides: Any) -> FlowConfig:
    values = dict(
        producer_app=PRODUCER,
        consumer_app=CONSUMER,
        private_key="0x" + "f" * 64,
        result_gateway_url=GATEWAY,
        poll=PollSettings(settle_delay=5.0, poll_interval=3.0, max_wait=60.0),
    )
    values.update(overrides)
    return FlowConfig(**values)


def producer_document(digest: str, pushed: bool = True) -> dict:
    return {
        "success": pushed,
        "secretName": "app-secret",
        "consumerIdentity": CONSUMER,
        "secretInfo": {"hash": digest, "type": "api-key"},
        "smsInfo": {"pushed": pushed, "error": None if pushed else "sms down"},
    }


def consumer_document(digest: str) -> dict:
    return {"success": True, "secretType": "App Secret (Global)", "hashes": {"sha256": digest}}
