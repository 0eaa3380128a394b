"""
Catalog assembly.

Reads one page of rows, resolves every row's photo link concurrently
and shapes the JSON the front end renders.
"""

import asyncio
import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from link_resolver.service import LinkResolutionService

from .row_source import Row, RowSource

logger = logging.getLogger(__name__)

# Output field -> spreadsheet column
DEFAULT_FIELD_MAP = {
    "city": "Город",
    "supplier": "Поставщик",
    "type": "Тип",
    "number": "Номер",
    "terminal": "Терминал",
    "price": "Цена",
}
DEFAULT_PHOTO_COLUMN = "Фото"


@dataclass
class CatalogSettings:
    """Configuration for the catalog endpoint."""
    rows_file: Optional[Path] = None
    page_size: int = 10
    max_page_size: int = 100
    photo_column: str = DEFAULT_PHOTO_COLUMN
    field_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_MAP))

    @classmethod
    def from_env(cls) -> "CatalogSettings":
        rows_file = os.getenv("CATALOG_ROWS_FILE")
        return cls(
            rows_file=Path(rows_file) if rows_file else None,
            page_size=int(os.getenv("CATALOG_PAGE_SIZE", "10")),
            photo_column=os.getenv("CATALOG_PHOTO_COLUMN", DEFAULT_PHOTO_COLUMN),
        )


class CatalogAssembler:
    """
    Usage:
        assembler = CatalogAssembler(row_source, link_service, settings)
        payload = await assembler.page(page=1, limit=10)
    """

    def __init__(self, rows: RowSource, links: LinkResolutionService, settings: Optional[CatalogSettings] = None):
        self.rows = rows
        self.links = links
        self.settings = settings or CatalogSettings()

    async def _build_item(self, row: Row) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            name: row.get(column, "") for name, column in self.settings.field_map.items()
        }
        raw_photo = (row.get(self.settings.photo_column) or "").strip()
        if raw_photo:
            item["photo"] = await self.links.resolve_image_reference(raw_photo)
        else:
            item["photo"] = self.links.placeholder
        return item

    async def page(self, page: int = 1, limit: Optional[int] = None) -> Dict[str, Any]:
        page = max(1, page)
        limit = limit or self.settings.page_size
        limit = max(1, min(limit, self.settings.max_page_size))
        offset = (page - 1) * limit

        rows, total = await self.rows.fetch_rows(offset, limit)
        data: List[Dict[str, Any]] = await asyncio.gather(*(self._build_item(row) for row in rows))

        placeholders = sum(1 for item in data if item["photo"] == self.links.placeholder)
        logger.info(f"[Catalog] Page {page}: {len(data)} items, {placeholders} without photo")

        return {
            "success": True,
            "data": data,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit) if total else 0,
                "hasNextPage": page * limit < total,
            },
        }
