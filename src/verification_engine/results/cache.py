"""TTL cache for verification results keyed by content fingerprint."""

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..main import VerificationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: VerificationResult
    stored_at: float
    expires_at: float


class ResultsCache:
    """
    Process-local result cache with max size and TTL.

    Values are written once per key and never mutated in place; keys
    are content-addressed, so concurrent writers for the same key store
    equivalent payloads. All access happens on the event loop thread.
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_size: int = 10000,
        key_prefix: str = "results:",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._prefix = key_prefix
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def contains(self, key: str) -> bool:
        """Live entry check that leaves hit/miss stats alone"""
        entry = self._entries.get(self._prefix + key)
        return entry is not None and self._clock() < entry.expires_at

    def get(self, key: str) -> Optional[VerificationResult]:
        full_key = self._prefix + key
        entry = self._entries.get(full_key)
        if entry is None:
            self._misses += 1
            logger.debug(f"Cache miss for key: {key}")
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[full_key]
            self._misses += 1
            logger.debug(f"Cache expired for key: {key}")
            return None
        self._hits += 1
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    def set(self, key: str, value: VerificationResult) -> None:
        full_key = self._prefix + key
        if len(self._entries) >= self._max_size and full_key not in self._entries:
            self._evict_oldest()
        now = self._clock()
        self._entries[full_key] = CacheEntry(
            key=full_key,
            value=value,
            stored_at=now,
            expires_at=now + self._ttl,
        )

    def delete(self, key: str) -> bool:
        removed = self._entries.pop(self._prefix + key, None) is not None
        if removed:
            logger.debug(f"Deleted cache entry for key: {key}")
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info("Results cache cleared")

    def cleanup_expired(self) -> int:
        """Drop expired entries, returning how many were removed"""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total, 4) if total > 0 else 0.0,
            "max_size": self._max_size,
            "ttl_seconds": self._ttl,
        }

    @staticmethod
    def generate_cache_key(
        content_hash: str,
        domain: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        options_hash = ""
        if options:
            encoded = json.dumps(options, sort_keys=True, separators=(",", ":"))
            options_hash = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:12]
        return f"{content_hash}:{domain}:{options_hash}"

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].stored_at)
        del self._entries[oldest]
        logger.debug(f"Evicted oldest cache entry: {oldest}")

    def __len__(self) -> int:
        return len(self._entries)
