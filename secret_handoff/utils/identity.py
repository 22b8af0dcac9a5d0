"""Consumer identity helpers."""

from __future__ import annotations

import re
from typing import Any, Optional

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: Any) -> bool:
    """Return True for a 0x-prefixed 20-byte hex address."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value.strip()))


def same_identity(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two identities ignoring surrounding whitespace and hex case."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()
