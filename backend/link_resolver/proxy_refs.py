"""
Proxy reference registry.

Maps the opaque ref in /resolve/{ref} to the upstream URL it stands
for. Refs are derived from the raw link, so a link keeps the same
proxy path when its download handle is refreshed.
"""

import hashlib
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

RESOLVE_PREFIX = "/resolve/"


@dataclass(frozen=True)
class ProxyTarget:
    ref: str
    raw_link: str
    upstream_url: str
    mime_type: Optional[str]
    expires_at: Optional[float]


def ref_for(raw_link: str) -> str:
    return hashlib.sha256(raw_link.encode("utf-8")).hexdigest()[:24]


class ProxyRefRegistry:

    def __init__(self, clock: Callable[[], float] = time.time):
        self._targets: Dict[str, ProxyTarget] = {}
        self._clock = clock

    def register(
        self,
        raw_link: str,
        upstream_url: str,
        mime_type: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> str:
        """Register (or replace) the target for a raw link and return its proxy path."""
        ref = ref_for(raw_link)
        self._targets[ref] = ProxyTarget(
            ref=ref,
            raw_link=raw_link,
            upstream_url=upstream_url,
            mime_type=mime_type,
            expires_at=self._clock() + ttl if ttl is not None else None,
        )
        return RESOLVE_PREFIX + ref

    def lookup(self, ref: str) -> Optional[ProxyTarget]:
        target = self._targets.get(ref)
        if target is None:
            return None
        if target.expires_at is not None and self._clock() >= target.expires_at:
            return None
        return target

    def raw_link_for(self, ref: str) -> Optional[str]:
        """Raw link behind a ref, even when its handle has expired."""
        target = self._targets.get(ref)
        return target.raw_link if target else None

    def expire(self, ref: str) -> None:
        """Mark a target's handle dead while keeping the raw link behind it."""
        target = self._targets.get(ref)
        if target is not None:
            self._targets[ref] = replace(target, expires_at=self._clock())

    def discard(self, ref: str) -> None:
        self._targets.pop(ref, None)

    def clear(self) -> int:
        count = len(self._targets)
        self._targets.clear()
        return count

    def cleanup_expired(self, grace: float = 0.0) -> int:
        """
        Drop targets whose handle expired more than `grace` seconds ago.

        Within the grace period an expired ref can still be re-resolved
        from its raw link by the proxy.
        """
        now = self._clock()
        expired = [
            ref for ref, target in self._targets.items()
            if target.expires_at is not None and now >= target.expires_at + grace
        ]
        for ref in expired:
            del self._targets[ref]
        return len(expired)

    def __len__(self) -> int:
        return len(self._targets)
