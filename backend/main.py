"""
Catalog backend application.

Serves the catalog JSON, the link resolver endpoints, the streaming
image proxy and the placeholder asset. Every shared service is built
once in the lifespan and torn down on shutdown.

Run:
    cd backend
    python main.py
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from catalog import CatalogAssembler, CatalogSettings, InMemoryRowSource, JsonFileRowSource, RowSource
from catalog import catalog_router
from image_proxy import ImageStreamer
from image_proxy import router as image_proxy_router
from link_resolver import ResolverSettings, build_link_service, resolver_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def create_app(
    resolver_settings: Optional[ResolverSettings] = None,
    catalog_settings: Optional[CatalogSettings] = None,
    row_source: Optional[RowSource] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> FastAPI:
    """
    Build the application.

    Args:
        resolver_settings: Defaults to ResolverSettings.from_env()
        catalog_settings: Defaults to CatalogSettings.from_env()
        row_source: Overrides the row source chosen from catalog settings
        transport: httpx transport for all outbound calls (tests pass a MockTransport)
        sleep: Sleep used for retry delays and rate limiting
    """
    resolver_settings = resolver_settings or ResolverSettings.from_env()
    catalog_settings = catalog_settings or CatalogSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = build_link_service(resolver_settings, transport=transport, sleep=sleep)

        rows = row_source
        if rows is None:
            if catalog_settings.rows_file is not None:
                rows = JsonFileRowSource(catalog_settings.rows_file)
            else:
                logger.warning("CATALOG_ROWS_FILE not set, catalog is empty")
                rows = InMemoryRowSource([])

        app.state.link_service = service
        app.state.image_streamer = ImageStreamer(service.http.client, resolver_settings)
        app.state.catalog = CatalogAssembler(rows, service, catalog_settings)
        logger.info("Link resolver ready")

        yield

        await service.aclose()
        logger.info("Link resolver stopped")

    app = FastAPI(title="Catalog Backend", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(catalog_router)
    app.include_router(resolver_router)
    app.include_router(image_proxy_router)

    @app.get(resolver_settings.placeholder_path, include_in_schema=False)
    async def placeholder():
        return FileResponse(
            STATIC_DIR / "placeholder.jpg",
            media_type="image/jpeg",
            headers={"Cache-Control": "public, max-age=86400"},
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        service = app.state.link_service
        return JSONResponse(content={
            "status": "healthy",
            "service": "catalog-backend",
            "cache_stats": service.cache.stats(),
        })

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
