"""
Link Resolver API Routes

Provides HTTP endpoints for:
- GET    /api/links/resolve?url=...           - Resolve one raw link
- GET    /api/resolver/cache/stats            - Cache statistics
- GET    /api/resolver/cache/list             - Cached resolutions
- DELETE /api/resolver/cache/entry?key=...    - Invalidate one raw link
- POST   /api/resolver/cache/clear            - Drop every cached resolution
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from .classifier import classify
from .service import LinkResolutionService

router = APIRouter(tags=["link resolver"])


def get_link_service(request: Request) -> LinkResolutionService:
    """Service instance created by the application lifespan."""
    return request.app.state.link_service


# ============================================
# Response Models
# ============================================

class ResolveResponse(BaseModel):
    success: bool
    kind: str
    reference: str


class CacheSummary(BaseModel):
    key: str
    resolved_value: str
    kind: str
    volatile: bool
    created_at: str
    expires_at: Optional[str]


class CacheListResponse(BaseModel):
    success: bool
    count: int
    items: List[CacheSummary]


class CacheStatsResponse(BaseModel):
    total_entries: int
    volatile_entries: int
    entries_with_ttl: int
    by_kind: Dict[str, int]
    hits: int
    misses: int


# ============================================
# API Endpoints
# ============================================

@router.get("/api/links/resolve", response_model=ResolveResponse)
async def resolve_link(request: Request, url: str = Query("", description="Raw image link")):
    """
    Resolve a raw link the same way the catalog does.

    Never fails: unresolvable links come back as the placeholder path.
    """
    service = get_link_service(request)
    reference = await service.resolve_image_reference(url)
    return ResolveResponse(
        success=reference != service.placeholder,
        kind=classify(url).kind.value,
        reference=reference,
    )


@router.get("/api/resolver/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(request: Request):
    return CacheStatsResponse(**get_link_service(request).cache.stats())


@router.get("/api/resolver/cache/list", response_model=CacheListResponse)
async def list_cache(request: Request):
    service = get_link_service(request)
    service.cleanup_expired()
    entries = service.cache.list_all()
    return CacheListResponse(
        success=True,
        count=len(entries),
        items=[CacheSummary(**e.to_summary()) for e in entries],
    )


@router.delete("/api/resolver/cache/entry")
async def invalidate_entry(request: Request, key: str = Query(..., description="Raw link")):
    """
    Invalidate one cached resolution.

    The next catalog read resolves the link from scratch.
    """
    if get_link_service(request).invalidate(key):
        return {"success": True, "message": f"Invalidated: {key}"}
    raise HTTPException(status_code=404, detail=f"No cached resolution for '{key}'")


@router.post("/api/resolver/cache/clear")
async def clear_cache(request: Request):
    count = get_link_service(request).clear()
    return {
        "success": True,
        "message": f"Cleared {count} cache entries",
        "deleted_count": count,
    }
