"""
Catalog Module

Paged catalog listing backed by a pluggable row source, with photo
links resolved through the link resolver.
"""

from .assembler import CatalogAssembler, CatalogSettings
from .routes import router as catalog_router
from .row_source import InMemoryRowSource, JsonFileRowSource, RowSource, RowSourceError

__all__ = [
    "CatalogAssembler",
    "CatalogSettings",
    "catalog_router",
    "InMemoryRowSource",
    "JsonFileRowSource",
    "RowSource",
    "RowSourceError",
]
