"""Producer program: generate a secret inside the enclave and push it for the consumer.

The output never contains the secret value, only its digest and metadata.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional

from ..config import ProducerCredentials
from ..errors import StoreError
from ..generation.generator import generate_secret
from ..store.base import SecretStoreBackend
from ..store.client import SecretStoreClient
from .args import parse_producer_args
from .output import write_result

logger = logging.getLogger(__name__)

StoreFactory = Callable[[ProducerCredentials], SecretStoreBackend]


async def run_producer(
    raw_args: Optional[str],
    *,
    developer_secret: Optional[str],
    store_factory: StoreFactory,
    output_dir: Path | str,
    default_consumer: Optional[str] = None,
) -> dict:
    """Generate, push and report. Returns the document written to ``result.json``."""
    credentials = ProducerCredentials.from_secret_value(developer_secret)
    if credentials is None:
        logger.error("No developer secret with DEDICATED_PRIVATE_KEY configured")
        document = {
            "success": False,
            "error": "App Secret not configured",
            "instructions": "Deploy this app with an App Secret containing DEDICATED_PRIVATE_KEY",
        }
        write_result(output_dir, document)
        return document

    args = parse_producer_args(raw_args)
    target = args.consumer_identity or default_consumer
    logger.info("Consumer: %s", target or "not specified")
    logger.info("Secret label: %s (metadata only)", args.secret_label)

    secret = generate_secret(args.secret_type)
    logger.info("Generated %s secret, sha256 %s", secret.type.value, secret.digest)

    pushed = False
    error: Optional[str] = "No consumer address provided"
    if target:
        client = SecretStoreClient(store_factory(credentials))
        try:
            pushed = await client.push(target, secret.value)
            error = None
        except StoreError as exc:
            logger.error("Failed to push secret: %s", exc)
            error = str(exc)
    else:
        logger.warning("Skipping push: args should be 'consumerAddress,secretLabel,secretType'")

    document = {
        "success": pushed,
        "secretName": args.secret_label,
        "consumerIdentity": target,
        "secretInfo": secret.to_public_dict(),
        "smsInfo": {"pushed": pushed, "error": error},
        "consumeInstructions": {
            "secretType": "App Secret (Global)",
            "note": "The secret is bound to the consumer app as its developer secret.",
        },
    }
    result_path = write_result(output_dir, document)
    logger.info("Output written to %s", result_path)
    return document


def producer_environment() -> dict:
    """Inputs the trusted runtime passes to the producer through its environment."""
    return {
        "developer_secret": os.getenv("IEXEC_APP_DEVELOPER_SECRET"),
        "output_dir": os.getenv("IEXEC_OUT", "./output"),
        "default_consumer": os.getenv("CONSUME_APP_ADDRESS"),
    }
