"""Loading externally provided substrate and store implementations."""

from __future__ import annotations

import importlib
from typing import Any, Optional

from .errors import ConfigurationError


def load_object(path: Optional[str], *, setting: str) -> Any:
    """Import ``package.module:attribute``."""
    module_name, _, attr = (path or "").partition(":")
    if not module_name or not attr:
        raise ConfigurationError([setting], f"{setting} must look like 'package.module:factory', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError([setting], f"Cannot import {module_name} for {setting}: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError([setting], f"{module_name} has no attribute {attr!r}") from exc
