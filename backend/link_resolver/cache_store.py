"""
Resolution Cache

In-memory store of resolved image references, keyed by raw link.

Features:
- Optional per-entry TTL (container handles expire upstream)
- Volatile flag for entries that need a freshness probe before reuse
- Whole-entry replacement only, never partial updates
- Only successful resolutions are stored

All access happens on the event loop thread; none of the methods
await, so a get/put pair is atomic with respect to other tasks.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .models import LinkKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """
    Cache entry data structure
    """
    key: str                          # Raw link as submitted
    resolved_value: str               # Absolute URL or internal proxy path
    created_at: float                 # Unix timestamp when created
    expires_at: Optional[float]       # None = lives for the process lifetime
    kind: LinkKind = LinkKind.UNKNOWN
    volatile: bool = False

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_summary(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "resolved_value": self.resolved_value,
            "kind": self.kind.value,
            "volatile": self.volatile,
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "expires_at": (
                datetime.fromtimestamp(self.expires_at).isoformat()
                if self.expires_at is not None else None
            ),
        }


class ResolutionCache:
    """
    Key/value store of successful resolutions.

    Constructed once per application and passed to whoever needs it.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: Dict[str, CacheEntry] = {}
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Get entry by raw link.

        Returns:
            CacheEntry if present and not expired, None otherwise
        """
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            logger.debug(f"[ResolutionCache] Expired: {key[:60]}")
            del self._store[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def put(
        self,
        key: str,
        value: str,
        ttl: Optional[float] = None,
        kind: LinkKind = LinkKind.UNKNOWN,
        volatile: bool = False,
    ) -> CacheEntry:
        """
        Store a resolved value, replacing any previous entry for the key.

        Args:
            key: Raw link
            value: Dereferenceable reference (absolute URL or proxy path)
            ttl: Optional lifetime in seconds
            kind: Link classification, kept for stats and freshness checks
            volatile: Re-probe before trusting on later reads
        """
        now = self._clock()
        entry = CacheEntry(
            key=key,
            resolved_value=value,
            created_at=now,
            expires_at=now + ttl if ttl is not None else None,
            kind=kind,
            volatile=volatile,
        )
        self._store[key] = entry
        logger.debug(f"[ResolutionCache] Stored: {key[:60]} -> {value[:60]}")
        return entry

    def invalidate(self, key: str) -> bool:
        """
        Delete one entry.

        Returns:
            True if deleted, False if not found
        """
        if self._store.pop(key, None) is not None:
            logger.info(f"[ResolutionCache] Invalidated: {key[:60]}")
            return True
        return False

    def clear(self) -> int:
        count = len(self._store)
        self._store.clear()
        return count

    def cleanup_expired(self) -> int:
        """Remove expired entries, returning how many were dropped."""
        now = self._clock()
        expired = [k for k, v in self._store.items() if v.is_expired(now)]
        for k in expired:
            del self._store[k]
        return len(expired)

    def list_all(self) -> List[CacheEntry]:
        self.cleanup_expired()
        return sorted(self._store.values(), key=lambda e: -e.created_at)

    def __len__(self) -> int:
        return len(self._store)

    def stats(self) -> Dict[str, Any]:
        entries = list(self._store.values())
        by_kind: Dict[str, int] = {}
        for entry in entries:
            by_kind[entry.kind.value] = by_kind.get(entry.kind.value, 0) + 1
        return {
            "total_entries": len(entries),
            "volatile_entries": sum(1 for e in entries if e.volatile),
            "entries_with_ttl": sum(1 for e in entries if e.expires_at is not None),
            "by_kind": by_kind,
            "hits": self._hits,
            "misses": self._misses,
        }
