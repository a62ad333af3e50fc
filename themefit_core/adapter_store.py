"""
Adapter Store - durable theme adapter storage with a TTL cache in front

Keys are (shop_id, fingerprint). The SQLite table is the source of truth;
the cache only saves reads and may disappear at any time.

Read path:   cache -> durable -> repopulate cache (best effort)
Write path:  durable (must succeed) -> cache (best effort)

Durable read failures are reported as "not found": callers treat a missing
adapter and an unavailable store the same way.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from .config import config
from .errors import AdapterStoreError, AdapterValidationError
from .models import ThemeAdapter, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86400 * 7


def cache_key(shop_id: str, fingerprint: str) -> str:
    return f"adapter:{shop_id}:{fingerprint}"


class AdapterCache(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self, prefix: str = "") -> List[str]: ...


class MemoryAdapterCache:
    """In-process TTL cache holding serialized adapters."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        now = self._clock()
        with self._lock:
            return [k for k, (exp, _) in self._entries.items() if k.startswith(prefix) and exp > now]


class SQLiteAdapterStore:
    """
    Durable adapter table.

    Re-saving an existing (shop_id, fingerprint) keeps the first created_at and
    overwrites the body and updated_at; concurrent saves are last-write-wins.
    """

    def __init__(self, db_path: str = "workspace/adapters.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=10)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS theme_adapters (
                    shop_id TEXT NOT NULL,
                    fingerprint TEXT NOT NULL,
                    adapter_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (shop_id, fingerprint)
                )
            """)

    def upsert(self, shop_id: str, fingerprint: str, adapter: ThemeAdapter) -> ThemeAdapter:
        """Write the adapter; returns it as stored (with the preserved created_at)."""
        now = utc_now_iso()
        with self._connect() as conn:
            # write lock up front so the created_at read and the upsert are atomic
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT created_at FROM theme_adapters WHERE shop_id = ? AND fingerprint = ?",
                (shop_id, fingerprint),
            ).fetchone()
            created_at = row[0] if row else (adapter.created_at or now)
            stored = adapter.stamped(now)
            stored.created_at = created_at
            conn.execute("""
                INSERT INTO theme_adapters (shop_id, fingerprint, adapter_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(shop_id, fingerprint) DO UPDATE SET
                    adapter_json = excluded.adapter_json,
                    updated_at = excluded.updated_at
            """, (shop_id, fingerprint, json.dumps(stored.to_dict()), created_at, now))
        return stored

    def get(self, shop_id: str, fingerprint: str) -> Optional[ThemeAdapter]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT adapter_json FROM theme_adapters WHERE shop_id = ? AND fingerprint = ?",
                (shop_id, fingerprint),
            ).fetchone()
        if row is None:
            return None
        return ThemeAdapter.from_dict(json.loads(row[0]))

    def list_fingerprints(self, shop_id: str) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT fingerprint FROM theme_adapters WHERE shop_id = ? ORDER BY updated_at DESC",
                (shop_id,),
            ).fetchall()
        return [r[0] for r in rows]

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM theme_adapters").fetchone()[0]


class AdapterStore:
    """Cache-fronted adapter storage."""

    def __init__(
        self,
        durable: Optional[SQLiteAdapterStore] = None,
        cache: Optional[AdapterCache] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.durable = durable if durable is not None else SQLiteAdapterStore(str(config.db_path))
        self.cache = cache if cache is not None else MemoryAdapterCache()
        self.ttl_seconds = ttl_seconds

    def save(self, shop_id: str, fingerprint: str, adapter: ThemeAdapter) -> ThemeAdapter:
        try:
            stored = self.durable.upsert(shop_id, fingerprint, adapter)
        except (sqlite3.Error, OSError) as e:
            raise AdapterStoreError(f"Failed to persist adapter {shop_id}/{fingerprint}: {e}") from e
        self._cache_put(shop_id, fingerprint, stored)
        logger.info(f"Theme adapter saved for shop {shop_id}, fingerprint {fingerprint}")
        return stored

    def load(self, shop_id: str, fingerprint: str) -> Optional[ThemeAdapter]:
        key = cache_key(shop_id, fingerprint)
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        try:
            adapter = self.durable.get(shop_id, fingerprint)
        except (sqlite3.Error, OSError, ValueError, AdapterValidationError) as e:
            logger.error(f"Durable adapter read failed for {shop_id}/{fingerprint}: {e}")
            return None
        if adapter is None:
            return None

        self._cache_put(shop_id, fingerprint, adapter)
        return adapter

    def invalidate(self, shop_id: str, fingerprint: str) -> None:
        try:
            self.cache.delete(cache_key(shop_id, fingerprint))
            logger.info(f"Theme adapter invalidated for shop {shop_id}, fingerprint {fingerprint}")
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {shop_id}/{fingerprint}: {e}")

    def clear_shop(self, shop_id: str) -> int:
        """Drop every cached adapter of a shop; durable rows stay."""
        try:
            keys = self.cache.keys(cache_key(shop_id, ""))
            for key in keys:
                self.cache.delete(key)
        except Exception as e:
            logger.warning(f"Failed to clear cache for shop {shop_id}: {e}")
            return 0
        logger.info(f"Cleared {len(keys)} cached theme adapters for shop {shop_id}")
        return len(keys)

    def stats(self) -> Dict[str, int]:
        try:
            cached = len(self.cache.keys("adapter:"))
        except Exception:
            cached = 0
        try:
            durable = self.durable.count()
        except (sqlite3.Error, OSError):
            durable = 0
        return {"cached_adapters": cached, "durable_adapters": durable}

    def _cache_get(self, key: str) -> Optional[ThemeAdapter]:
        try:
            raw = self.cache.get(key)
        except Exception as e:
            logger.warning(f"Adapter cache unavailable, reading durable store: {e}")
            return None
        if raw is None:
            return None
        try:
            return ThemeAdapter.from_dict(json.loads(raw))
        except (ValueError, AdapterValidationError) as e:
            logger.warning(f"Evicting corrupt cache entry {key}: {e}")
            try:
                self.cache.delete(key)
            except Exception as delete_error:
                logger.warning(f"Failed to evict {key}: {delete_error}")
            return None

    def _cache_put(self, shop_id: str, fingerprint: str, adapter: ThemeAdapter) -> None:
        try:
            self.cache.set(cache_key(shop_id, fingerprint), json.dumps(adapter.to_dict()), self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Failed to cache adapter {shop_id}/{fingerprint}: {e}")
