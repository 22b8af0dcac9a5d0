"""Example: two separate flows sharing a lock file, as two process runs would."""

from __future__ import annotations

import asyncio
import os
import tempfile

from secret_handoff import FlowConfig, build_flow
from secret_handoff.demo import build_simulation
from secret_handoff.execution import PollSettings
from secret_handoff.fingerprint import JsonFileFingerprintRepository


async def main() -> None:
    config = FlowConfig.from_env()
    config.producer_app = config.producer_app or "0x" + "1" * 40
    config.consumer_app = config.consumer_app or "0x" + "2" * 40
    config.private_key = config.private_key or "0x" + "9" * 64
    config.poll = PollSettings(settle_delay=0.0, poll_interval=0.05, max_poll_interval=0.2)

    sim = build_simulation(config)
    lock_path = os.path.join(tempfile.mkdtemp(prefix="secret-handoff-"), ".secret-lock.json")

    for run_no in (1, 2):
        flow = build_flow(
            config,
            substrate=sim.substrate,
            store_backend=sim.store,
            transport=sim.transport,
            repository=JsonFileFingerprintRepository(lock_path),
        )
        report = await flow.run()
        print(f"RUN {run_no}:", report.provisioning.state.value, report.verification.reason.value)

    with open(lock_path) as f:
        print("LOCK FILE:", f.read())


if __name__ == "__main__":
    asyncio.run(main())
