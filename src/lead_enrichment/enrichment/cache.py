"""
Enrichment Cache
Per-(tenant, contact, field) resolved values with expiry.

There is no negative caching: only accepted values are ever written, so a
field that could not be resolved is retried on the next request.
"""

import asyncio
import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from ..core.models import EnrichmentCacheEntry, utc_now


class EnrichmentCache(ABC):
    """Cache contract consulted by the orchestrator before any provider is paid"""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.logger = logging.getLogger(__name__)
        self.clock = clock

    @abstractmethod
    async def get(self, tenant_id: str, contact_id: str, field_name: str) -> Optional[EnrichmentCacheEntry]:
        """Live entry for the key, or None when missing or expired"""

    @abstractmethod
    async def set(self, entry: EnrichmentCacheEntry) -> None:
        """Write an entry, superseding any existing one for the same key"""

    @abstractmethod
    async def invalidate(self, tenant_id: str, contact_id: str, field_name: Optional[str] = None) -> int:
        """Drop one field, or every field of a contact. Returns entries removed"""

    @abstractmethod
    async def delete_expired(self) -> int:
        """Purge expired entries. Returns entries removed"""


class InMemoryEnrichmentCache(EnrichmentCache):
    """Simple in-memory cache for enrichment results"""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        super().__init__(clock)
        self.cache: Dict[Tuple[str, str, str], EnrichmentCacheEntry] = {}

    async def get(self, tenant_id: str, contact_id: str, field_name: str) -> Optional[EnrichmentCacheEntry]:
        key = (tenant_id, contact_id, field_name)
        entry = self.cache.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock()):
            # Remove expired entry
            del self.cache[key]
            return None
        return entry

    async def set(self, entry: EnrichmentCacheEntry) -> None:
        self.cache[(entry.tenant_id, entry.contact_id, entry.field_name)] = entry

    async def invalidate(self, tenant_id: str, contact_id: str, field_name: Optional[str] = None) -> int:
        if field_name is not None:
            return 1 if self.cache.pop((tenant_id, contact_id, field_name), None) else 0

        keys = [k for k in self.cache if k[0] == tenant_id and k[1] == contact_id]
        for key in keys:
            del self.cache[key]
        return len(keys)

    async def delete_expired(self) -> int:
        now = self.clock()
        expired = [k for k, entry in self.cache.items() if entry.is_expired(now)]
        for key in expired:
            del self.cache[key]
        if expired:
            self.logger.info(f"Removed {len(expired)} expired cache entries")
        return len(expired)


class SQLiteEnrichmentCache(EnrichmentCache):
    """
    SQLite-backed cache.

    Values are stored as JSON; expiry is checked at read time and purged by
    ``delete_expired``. Blocking sqlite calls run in a worker thread.
    """

    def __init__(self, path: Union[str, Path], clock: Callable[[], datetime] = utc_now):
        super().__init__(clock)
        self.path = str(path)
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS enrichment_cache (
                    tenant_id TEXT NOT NULL,
                    contact_id TEXT NOT NULL,
                    field_name TEXT NOT NULL,
                    provider_id TEXT NOT NULL,
                    value TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    expires_at TEXT NOT NULL,
                    PRIMARY KEY (tenant_id, contact_id, field_name)
                )
                """
            )

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def _get_sync(self, tenant_id: str, contact_id: str, field_name: str) -> Optional[EnrichmentCacheEntry]:
        with self._connect() as con:
            row = con.execute(
                "SELECT provider_id, value, confidence, expires_at FROM enrichment_cache "
                "WHERE tenant_id = ? AND contact_id = ? AND field_name = ?",
                (tenant_id, contact_id, field_name),
            ).fetchone()
        if not row:
            return None

        provider_id, value_json, confidence, expires_at = row
        entry = EnrichmentCacheEntry(
            tenant_id=tenant_id,
            contact_id=contact_id,
            field_name=field_name,
            provider_id=provider_id,
            value=json.loads(value_json),
            confidence=float(confidence),
            expires_at=datetime.fromisoformat(expires_at),
        )
        if entry.is_expired(self.clock()):
            return None
        return entry

    def _set_sync(self, entry: EnrichmentCacheEntry) -> None:
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO enrichment_cache
                    (tenant_id, contact_id, field_name, provider_id, value, confidence, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id, contact_id, field_name) DO UPDATE SET
                    provider_id=excluded.provider_id,
                    value=excluded.value,
                    confidence=excluded.confidence,
                    expires_at=excluded.expires_at
                """,
                (
                    entry.tenant_id,
                    entry.contact_id,
                    entry.field_name,
                    entry.provider_id,
                    json.dumps(entry.value, ensure_ascii=False),
                    entry.confidence,
                    entry.expires_at.isoformat(),
                ),
            )
            con.commit()

    def _invalidate_sync(self, tenant_id: str, contact_id: str, field_name: Optional[str]) -> int:
        sql = "DELETE FROM enrichment_cache WHERE tenant_id = ? AND contact_id = ?"
        params = [tenant_id, contact_id]
        if field_name is not None:
            sql += " AND field_name = ?"
            params.append(field_name)
        with self._connect() as con:
            cursor = con.execute(sql, params)
            con.commit()
            return cursor.rowcount

    def _delete_expired_sync(self) -> int:
        # Timestamps are all UTC ISO-8601, so string order matches time order
        with self._connect() as con:
            cursor = con.execute(
                "DELETE FROM enrichment_cache WHERE expires_at <= ?",
                (self.clock().isoformat(),),
            )
            con.commit()
            return cursor.rowcount

    async def get(self, tenant_id: str, contact_id: str, field_name: str) -> Optional[EnrichmentCacheEntry]:
        return await asyncio.to_thread(self._get_sync, tenant_id, contact_id, field_name)

    async def set(self, entry: EnrichmentCacheEntry) -> None:
        await asyncio.to_thread(self._set_sync, entry)

    async def invalidate(self, tenant_id: str, contact_id: str, field_name: Optional[str] = None) -> int:
        return await asyncio.to_thread(self._invalidate_sync, tenant_id, contact_id, field_name)

    async def delete_expired(self) -> int:
        removed = await asyncio.to_thread(self._delete_expired_sync)
        if removed:
            self.logger.info(f"Removed {removed} expired cache entries")
        return removed


def create_cache(backend: str = "memory", path: Optional[Union[str, Path]] = None,
                 clock: Callable[[], datetime] = utc_now) -> EnrichmentCache:
    """Build the cache backend named in configuration"""
    if backend == "sqlite":
        if path is None:
            raise ValueError("sqlite cache backend requires a path")
        return SQLiteEnrichmentCache(path, clock)
    if backend == "memory":
        return InMemoryEnrichmentCache(clock)
    raise ValueError(f"Unknown cache backend: {backend}")
