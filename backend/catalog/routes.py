"""
Catalog API Routes

- GET /api/containers?page=1&limit=10 - One page of catalog items with resolved photos
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from .assembler import CatalogAssembler
from .row_source import RowSourceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["catalog"])


def get_assembler(request: Request) -> CatalogAssembler:
    return request.app.state.catalog


@router.get("/containers")
async def list_containers(
    request: Request,
    page: int = Query(1, ge=1, description="Page number, 1-based"),
    limit: Optional[int] = Query(None, ge=1, le=100, description="Items per page"),
):
    """
    List catalog items.

    Photo links are resolved server-side; each item's `photo` is a URL,
    a proxy path or the placeholder path.
    """
    try:
        return await get_assembler(request).page(page=page, limit=limit)
    except RowSourceError as e:
        logger.error(f"[Catalog] Row source error: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
