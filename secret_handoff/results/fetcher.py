"""Result archive retrieval and ``result.json`` extraction."""

from __future__ import annotations

import io
import json
import logging
import zipfile
import zlib
from typing import Any, Optional

from ..errors import ResultError, ResultMalformed, ResultUnavailable
from .transport import ResultTransport, UrllibTransport

logger = logging.getLogger(__name__)

RESULT_MEMBER = "result.json"


def extract_result_document(archive: bytes, member: str = RESULT_MEMBER) -> dict[str, Any]:
    """Read ``member`` from a zip archive and parse it as a JSON object."""
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            names = [n for n in zf.namelist() if n == member or n.endswith("/" + member)]
            if not names:
                raise ResultMalformed(f"Archive has no {member}")
            # Shallowest match wins when producers nest their output directory.
            name = min(names, key=lambda n: (n.count("/"), n))
            raw = zf.read(name)
    except zipfile.BadZipFile as exc:
        raise ResultMalformed(f"Result is not a zip archive: {exc}") from exc
    except (zlib.error, EOFError, NotImplementedError, RuntimeError, OSError) as exc:
        # corrupt deflate stream, unsupported compression or encrypted member
        raise ResultMalformed(f"Cannot read {member} from archive: {exc}") from exc

    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ResultMalformed(f"{member} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ResultMalformed(f"{member} is not a JSON object")
    return document


class ResultFetcher:
    """Fetch and decode the structured output of a completed execution."""

    def __init__(self, gateway_url: str, transport: Optional[ResultTransport] = None) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.transport = transport or UrllibTransport()

    def url_for(self, location: str) -> str:
        if location.startswith(("http://", "https://")):
            return location
        return f"{self.gateway_url}/{location.lstrip('/')}"

    async def fetch(self, location: Optional[str]) -> dict[str, Any]:
        if not location:
            raise ResultUnavailable("Task reported no result location")
        url = self.url_for(location)
        try:
            archive = await self.transport.download(url)
        except Exception as exc:
            raise ResultUnavailable(f"Could not download {url}: {exc}") from exc
        return extract_result_document(archive)

    async def fetch_or_none(self, location: Optional[str]) -> Optional[dict[str, Any]]:
        """Like :meth:`fetch`, but an unavailable or malformed result is None."""
        try:
            return await self.fetch(location)
        except ResultError as exc:
            logger.error("Error fetching result: %s", exc)
            return None
