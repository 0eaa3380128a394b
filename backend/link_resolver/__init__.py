"""
Link Resolver Module

Turns heterogeneous image sharing links (direct URLs, Yandex Disk
public folders and files, Imgur albums and images) into references
a browser can load.

Features:
- Pure URL classification
- Per-provider resolvers with ordered fallback chains
- Bounded retries through an explicit state machine
- Per-provider outbound rate limiting
- Cache of successful resolutions (failures are never cached)
"""

from .cache_store import CacheEntry, ResolutionCache
from .classifier import classify
from .config import ResolverSettings
from .models import ClassifiedLink, LinkKind, Resolved, Unresolvable
from .routes import router as resolver_router
from .service import LinkResolutionService, build_link_service

__all__ = [
    "CacheEntry",
    "ResolutionCache",
    "classify",
    "ResolverSettings",
    "ClassifiedLink",
    "LinkKind",
    "Resolved",
    "Unresolvable",
    "resolver_router",
    "LinkResolutionService",
    "build_link_service",
]
