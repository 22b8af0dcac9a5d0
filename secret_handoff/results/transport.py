"""Result archive transports."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from urllib import request


class ResultTransport(ABC):
    """Downloads raw result archives."""

    @abstractmethod
    async def download(self, url: str) -> bytes:
        """Return the archive bytes at ``url``; raise on any transport failure."""


class UrllibTransport(ResultTransport):
    """HTTP(S) downloads with ``urllib.request`` in a worker thread."""

    def __init__(self, *, timeout: float = 60.0) -> None:
        self.timeout = timeout

    def _get(self, url: str) -> bytes:
        req = request.Request(url=url, headers={"Accept": "application/zip, */*"}, method="GET")
        with request.urlopen(req, timeout=self.timeout) as resp:
            return resp.read()

    async def download(self, url: str) -> bytes:
        return await asyncio.to_thread(self._get, url)


class InMemoryTransport(ResultTransport):
    """Serves archives published in-process (tests and the local simulation)."""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}

    def publish(self, url: str, archive: bytes) -> None:
        self.archives[url] = archive

    async def download(self, url: str) -> bytes:
        try:
            return self.archives[url]
        except KeyError:
            raise FileNotFoundError(f"No archive published at {url}") from None
