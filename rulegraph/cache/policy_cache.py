"""
Policy Cache — Effective policies keyed by graph fingerprint + identifier.

A new graph snapshot has a new fingerprint, so entries from older snapshots
are never served for it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from rulegraph.config import settings
from rulegraph.core.pattern_matcher import normalize_identifier
from rulegraph.models.policy_models import EffectivePolicy

logger = logging.getLogger("rulegraph.cache")


@dataclass
class CacheEntry:
    """A cached effective policy for one identifier."""

    policy: EffectivePolicy
    timestamp: float = field(default_factory=time.time)
    ttl_seconds: int = 3600

    @property
    def is_expired(self) -> bool:
        return (time.time() - self.timestamp) > self.ttl_seconds


class PolicyCache:
    """
    In-memory policy cache.

    Entries are immutable EffectivePolicy objects, so concurrent readers may
    share them freely.
    """

    def __init__(self, ttl_seconds: int | None = None, max_entries: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.policy_cache_ttl_seconds
        self.max_entries = max_entries if max_entries is not None else settings.policy_cache_max_entries
        self._store: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(fingerprint: str, identifier: str) -> str:
        return f"{fingerprint}:{normalize_identifier(identifier)}"

    def get(self, fingerprint: str, identifier: str) -> EffectivePolicy | None:
        """
        Look up a cached policy.

        Returns None if not cached or expired.
        """
        key = self._key(fingerprint, identifier)
        entry = self._store.get(key)

        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired:
            self._store.pop(key, None)
            self.misses += 1
            return None

        self.hits += 1
        return entry.policy

    def put(self, fingerprint: str, identifier: str, policy: EffectivePolicy) -> None:
        """Cache a resolved policy, evicting the oldest entry when a new key would overflow."""
        key = self._key(fingerprint, identifier)
        if key not in self._store and len(self._store) >= self.max_entries:
            oldest = min(list(self._store.items()), key=lambda kv: kv[1].timestamp)[0]
            self._store.pop(oldest, None)
            logger.debug(f"Evicted cached policy: {oldest}")
        self._store[key] = CacheEntry(
            policy=policy, ttl_seconds=self.ttl_seconds
        )

    def invalidate(self, fingerprint: str) -> int:
        """Remove all entries for one graph snapshot. Returns count removed."""
        keys_to_remove = [k for k in list(self._store) if k.startswith(f"{fingerprint}:")]
        for key in keys_to_remove:
            self._store.pop(key, None)
        return len(keys_to_remove)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._store.clear()

    @property
    def size(self) -> int:
        """Number of cached entries."""
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """Cache statistics."""
        expired = sum(1 for e in list(self._store.values()) if e.is_expired)
        return {
            "total_entries": len(self._store),
            "expired_entries": expired,
            "active_entries": len(self._store) - expired,
            "hits": self.hits,
            "misses": self.misses,
        }
