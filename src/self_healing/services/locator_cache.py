"""
Persistent cache of healed locators.

The whole mapping lives in memory and is mirrored to a single JSON document keyed
by the original locator. Every mutation rewrites the document before returning.
"""

import json
import os
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.errors import StorageDegradedError
from ..core.logging_config import get_healing_logger
from ..core.models.healing_models import (
    CacheEntry,
    CacheStatistics,
    LocatorStrategy,
    format_timestamp,
    parse_timestamp,
    utc_now
)

logger = get_healing_logger("cache")

DEFAULT_CACHE_PATH = "cache/locator_cache.json"
DEFAULT_MAX_AGE_DAYS = 2


class CacheRecord(BaseModel):
    """Schema of one persisted cache record."""

    model_config = ConfigDict(strict=True, extra="ignore")

    originalLocator: str
    generatedLocator: str = Field(min_length=1)
    strategy: Literal["CSS", "XPATH", "TEXT", "DATA_TESTID"]
    timestamp: str
    successCount: int = Field(ge=0)
    failureCount: int = Field(ge=0)

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        parse_timestamp(v)
        return v

    def to_entry(self, key: str) -> CacheEntry:
        return CacheEntry(
            key=key,
            generated_locator=self.generatedLocator,
            strategy=LocatorStrategy(self.strategy),
            created_at=parse_timestamp(self.timestamp),
            success_count=self.successCount,
            failure_count=self.failureCount
        )


class LocatorCache:
    """Durable key-value store of locator healing outcomes."""

    def __init__(self, cache_path: Union[str, Path] = DEFAULT_CACHE_PATH,
                 max_age_days: float = DEFAULT_MAX_AGE_DAYS):
        """Bind the cache to a document path and load it.

        Args:
            cache_path: Location of the persisted cache document
            max_age_days: Entries older than this are dropped while loading
        """
        self.cache_path = Path(cache_path)
        self.max_age = timedelta(days=max_age_days)
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._degraded = False

        self._ensure_cache_directory()
        self._load()

    @property
    def degraded(self) -> bool:
        """True once storage failed and the cache serves from memory only."""
        return self._degraded

    # =================== LOOKUP ===================

    def get(self, key: str) -> Optional[CacheEntry]:
        """Look up the healed locator for ``key``, counting a hit or a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._hits += 1
            else:
                self._misses += 1
            return entry

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Look up ``key`` without touching the hit/miss counters."""
        with self._lock:
            return self._entries.get(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_all_entries(self) -> Dict[str, CacheEntry]:
        """Return a copy of the mapping."""
        with self._lock:
            return dict(self._entries)

    # =================== MUTATION ===================

    def set(self, key: str, generated_locator: str, strategy: LocatorStrategy) -> CacheEntry:
        """Store a freshly healed locator, replacing any entry for ``key``."""
        if not key:
            raise ValueError("Cache key must be a non-empty string")

        entry = CacheEntry(
            key=key,
            generated_locator=generated_locator,
            strategy=LocatorStrategy(strategy),
            created_at=utc_now()
        )
        with self._lock:
            self._entries[key] = entry
            self._save()
        return entry

    def update_success(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.success_count += 1
            self._save()

    def update_failure(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.failure_count += 1
            self._save()

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            del self._entries[key]
            self._save()
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._save()

    def reload(self) -> None:
        """Discard in-memory entries and load the document again."""
        with self._lock:
            self._entries.clear()
            self._load()

    # =================== STATISTICS ===================

    def get_statistics(self) -> CacheStatistics:
        """Summarize entries and the cumulative hit rate of this process."""
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.created_at)
            hits, misses = self._hits, self._misses

        oldest_entry = format_timestamp(entries[0].created_at) if entries else None
        newest_entry = format_timestamp(entries[-1].created_at) if entries else None

        total_requests = hits + misses
        hit_rate = (hits / total_requests) * 100 if total_requests > 0 else 0.0

        return CacheStatistics(
            total_entries=len(entries),
            oldest_entry=oldest_entry,
            newest_entry=newest_entry,
            hit_rate=round(hit_rate, 2),
            total_hits=hits,
            total_misses=misses
        )

    # =================== PERSISTENCE ===================

    def _ensure_cache_directory(self) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._mark_degraded(f"cannot create cache directory {self.cache_path.parent}: {e}")

    def _load(self) -> None:
        """Load the document, skipping invalid records and dropping expired ones."""
        try:
            data = self._read_document()
        except StorageDegradedError as e:
            self._mark_degraded(str(e))
            return

        if data is None:
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring cache document {self.cache_path}: expected a JSON object")
            return

        now = utc_now()
        skipped = 0
        expired = 0
        for key, record in data.items():
            entry = self._decode_record(key, record)
            if entry is None:
                skipped += 1
                continue
            if now - entry.created_at > self.max_age:
                expired += 1
                continue
            self._entries[key] = entry

        logger.debug(
            f"Loaded {len(self._entries)} cache entries from {self.cache_path} "
            f"({skipped} invalid, {expired} expired)"
        )

    def _read_document(self) -> Optional[object]:
        if not self.cache_path.exists():
            return None
        try:
            raw = self.cache_path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageDegradedError(f"cannot read {self.cache_path}: {e}") from e

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse cache document {self.cache_path}: {e}")
            return None

    def _decode_record(self, key: str, record: object) -> Optional[CacheEntry]:
        if not key:
            return None
        try:
            return CacheRecord.model_validate(record).to_entry(key)
        except ValidationError as e:
            logger.debug(f"Skipping invalid cache record for {key!r}: {e.error_count()} error(s)")
            return None

    def _save(self) -> None:
        """Replace the whole document on disk; degrade to memory-only on failure."""
        if self._degraded:
            return
        try:
            self._write_document({key: entry.to_dict() for key, entry in self._entries.items()})
        except StorageDegradedError as e:
            self._mark_degraded(str(e))

    def _write_document(self, document: Dict[str, dict]) -> None:
        tmp_path = self.cache_path.with_name(
            f".{self.cache_path.name}.{os.getpid()}.{time.monotonic_ns()}.tmp"
        )
        try:
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.cache_path)
        except (OSError, TypeError, ValueError) as e:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise StorageDegradedError(f"cannot write {self.cache_path}: {e}") from e

    def _mark_degraded(self, reason: str) -> None:
        if not self._degraded:
            logger.warning(f"Locator cache storage unavailable, continuing in memory only: {reason}")
        self._degraded = True


_locator_cache: Optional[LocatorCache] = None


def get_locator_cache(cache_path: Union[str, Path] = DEFAULT_CACHE_PATH,
                      max_age_days: float = DEFAULT_MAX_AGE_DAYS) -> LocatorCache:
    """Get the process-wide cache bound to ``cache_path``.

    Asking for a different path replaces the instance with a fresh cache bound
    to the new path; entries are not carried over.
    """
    global _locator_cache
    if _locator_cache is None or _locator_cache.cache_path != Path(cache_path):
        _locator_cache = LocatorCache(cache_path, max_age_days)
    return _locator_cache


def reset_locator_cache() -> None:
    """Forget the process-wide cache instance."""
    global _locator_cache
    _locator_cache = None
