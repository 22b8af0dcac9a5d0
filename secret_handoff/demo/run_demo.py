"""Run the provision, reuse and drift sequence against the in-process substrate."""

from __future__ import annotations

import asyncio
import logging

from ..config import FlowConfig
from ..execution.driver import PollSettings
from ..fingerprint.storage import InMemoryFingerprintRepository
from ..flow import build_flow
from .substrate import build_simulation


async def main() -> None:
    config = FlowConfig(
        producer_app="0x" + "1" * 40,
        consumer_app="0x" + "2" * 40,
        private_key="0x" + "9" * 64,
        consumer_args="preview",
        poll=PollSettings(settle_delay=0.0, poll_interval=0.05, max_poll_interval=0.2),
    )
    sim = build_simulation(config)
    flow = build_flow(
        config,
        substrate=sim.substrate,
        store_backend=sim.store,
        transport=sim.transport,
        repository=InMemoryFingerprintRepository(),
    )
    try:
        first = await flow.run(secret_label="demo-key")
        print("FIRST RUN:", first.to_dict())

        second = await flow.run()
        print("SECOND RUN:", second.to_dict())

        sim.drift(config.consumer_app or "", "rotated-outside-the-flow")
        drifted = await flow.run()
        print("AFTER DRIFT:", drifted.to_dict())
    finally:
        await flow.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
