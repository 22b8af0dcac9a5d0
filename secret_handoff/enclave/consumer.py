"""Consumer program: report the digest of the secret it was provisioned with."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..utils.hashing import sha256_hex
from .args import CONSUMER_PREVIEW_REQUEST
from .output import write_result

logger = logging.getLogger(__name__)


def masked_preview(value: str, digest: str) -> str:
    """Length and digest prefix; no character of the value itself."""
    return f"<{len(value)} chars, sha256 {digest[:8]}...>"


def run_consumer(raw_args: Optional[str], *, secret_value: Optional[str], output_dir: Path | str) -> dict:
    request = (raw_args or "").strip().lower()
    if not secret_value:
        logger.error("No developer secret available to the consumer")
        document = {"success": False, "error": "No app secret available"}
        write_result(output_dir, document)
        return document

    digest = sha256_hex(secret_value)
    document: dict = {
        "success": True,
        "secretType": "App Secret (Global)",
        "hashes": {"sha256": digest},
    }
    if request == CONSUMER_PREVIEW_REQUEST:
        document["preview"] = masked_preview(secret_value, digest)
    write_result(output_dir, document)
    logger.info("Consumer observed sha256 %s", digest)
    return document


def consumer_environment() -> dict:
    return {
        "secret_value": os.getenv("IEXEC_APP_DEVELOPER_SECRET"),
        "output_dir": os.getenv("IEXEC_OUT", "./output"),
    }
