"""Result files written by enclave programs."""

from __future__ import annotations

import json
from pathlib import Path

RESULT_FILE = "result.json"
COMPUTED_FILE = "computed.json"


def write_result(output_dir: Path | str, document: dict) -> Path:
    """Write ``result.json`` and the ``computed.json`` pointer to it."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    result_path = out / RESULT_FILE
    with open(result_path, "w") as f:
        json.dump(document, f, indent=2)
    with open(out / COMPUTED_FILE, "w") as f:
        json.dump({"deterministic-output-path": str(result_path)}, f)
    return result_path
