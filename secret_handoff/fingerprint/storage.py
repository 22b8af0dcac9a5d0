"""Storage adapters for fingerprint records."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import asyncpg

from ..utils.identity import same_identity
from .record import FingerprintRecord

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = ".secret-lock.json"


class FingerprintRepository(ABC):
    """Abstract storage backend for fingerprint records."""

    @abstractmethod
    async def load(self, consumer_identity: str) -> Optional[FingerprintRecord]:
        """Return the record for ``consumer_identity``, or None if absent or for another consumer."""

    @abstractmethod
    async def save(self, record: FingerprintRecord) -> None:
        """Persist ``record``, replacing any previous record for that consumer."""

    @abstractmethod
    async def clear(self, consumer_identity: str) -> bool:
        """Delete the record for ``consumer_identity``; True if something was removed."""

    async def close(self) -> None:
        """Release backend resources if needed."""


class InMemoryFingerprintRepository(FingerprintRepository):
    """In-memory repository for tests."""

    def __init__(self, records: Optional[list[FingerprintRecord]] = None) -> None:
        self.records: dict[str, FingerprintRecord] = {}
        self.saves = 0
        for record in records or []:
            self.records[record.consumer_identity.lower()] = record

    async def load(self, consumer_identity: str) -> Optional[FingerprintRecord]:
        return self.records.get(consumer_identity.strip().lower())

    async def save(self, record: FingerprintRecord) -> None:
        self.records[record.consumer_identity.lower()] = record
        self.saves += 1

    async def clear(self, consumer_identity: str) -> bool:
        return self.records.pop(consumer_identity.strip().lower(), None) is not None


class JsonFileFingerprintRepository(FingerprintRepository):
    """Single-record JSON lock file.

    The file holds the record of the last consumer provisioned; a record for
    any other consumer reads as absent. Reads and writes are not locked, so
    two processes running against the same file race.
    """

    def __init__(self, path: Path | str = DEFAULT_LOCK_FILE) -> None:
        self.path = Path(path)

    def _read(self) -> Optional[FingerprintRecord]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable fingerprint file %s: %s", self.path, exc)
            return None
        record = FingerprintRecord.from_dict(data)
        if record is None:
            logger.warning("Ignoring malformed fingerprint file %s", self.path)
        return record

    async def load(self, consumer_identity: str) -> Optional[FingerprintRecord]:
        record = self._read()
        if record is None:
            return None
        if not same_identity(record.consumer_identity, consumer_identity):
            logger.info(
                "Fingerprint file belongs to %s, not %s; ignoring it",
                record.consumer_identity,
                consumer_identity,
            )
            return None
        return record

    async def save(self, record: FingerprintRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(record.to_dict(), f, indent=2)
            f.write("\n")
        tmp.replace(self.path)

    async def clear(self, consumer_identity: str) -> bool:
        record = self._read()
        if record is not None and not same_identity(record.consumer_identity, consumer_identity):
            return False
        if not self.path.exists():
            return False
        self.path.unlink()
        return True


class PostgresFingerprintRepository(FingerprintRepository):
    """Postgres-backed repository using asyncpg; saves are single-statement upserts."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self.pool is None:
            self.pool = await asyncpg.create_pool(dsn=self.dsn, min_size=1, max_size=4)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    async def load(self, consumer_identity: str) -> Optional[FingerprintRecord]:
        await self.connect()
        assert self.pool is not None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT consumer_identity, digest, recorded_at, reuse_count
                FROM secret_fingerprints WHERE consumer_identity=$1
                """,
                consumer_identity.strip().lower(),
            )
            if row is None:
                return None
            return FingerprintRecord(
                consumer_identity=row["consumer_identity"],
                digest=row["digest"],
                recorded_at=row["recorded_at"],
                reuse_count=row["reuse_count"],
            )

    async def save(self, record: FingerprintRecord) -> None:
        await self.connect()
        assert self.pool is not None
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO secret_fingerprints (consumer_identity, digest, recorded_at, reuse_count)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (consumer_identity) DO UPDATE SET
                    digest = EXCLUDED.digest,
                    recorded_at = EXCLUDED.recorded_at,
                    reuse_count = EXCLUDED.reuse_count
                """,
                record.consumer_identity.lower(),
                record.digest,
                record.recorded_at,
                record.reuse_count,
            )

    async def clear(self, consumer_identity: str) -> bool:
        await self.connect()
        assert self.pool is not None
        async with self.pool.acquire() as conn:
            status = await conn.execute(
                "DELETE FROM secret_fingerprints WHERE consumer_identity=$1",
                consumer_identity.strip().lower(),
            )
            return status != "DELETE 0"


def create_repository_from_env(lock_file: Optional[str] = None, dsn: Optional[str] = None) -> FingerprintRepository:
    """Create Postgres repository if a DSN is configured, otherwise the JSON lock file."""
    dsn = dsn or os.getenv("SECRET_HANDOFF_PG_DSN")
    if dsn:
        return PostgresFingerprintRepository(dsn=dsn)
    return JsonFileFingerprintRepository(lock_file or os.getenv("SECRET_LOCK_FILE") or DEFAULT_LOCK_FILE)
