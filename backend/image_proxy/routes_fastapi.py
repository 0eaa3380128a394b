"""
Image Proxy API Routes

Provides endpoints for:
- Streaming resolved provider images under our own origin (/resolve/{ref})
- Passthrough of direct images on hot-link-hostile hosts (/image-proxy)

Both endpoints answer 200 with the image bytes or 307 to the placeholder.
The caller is usually an <img> tag, which cannot do anything with an
error body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse, StreamingResponse
from starlette.background import BackgroundTask

from link_resolver.errors import HandleExpired, ResolutionError
from link_resolver.routes import get_link_service
from link_resolver.service import LinkResolutionService

from .streamer import ImageStreamer, UpstreamImage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Image Proxy"])


def get_streamer(request: Request) -> ImageStreamer:
    return request.app.state.image_streamer


def _placeholder(service: LinkResolutionService) -> RedirectResponse:
    return RedirectResponse(service.placeholder, status_code=307)


def _relay(upstream: UpstreamImage, service: LinkResolutionService) -> StreamingResponse:
    return StreamingResponse(
        upstream.iter_bytes(),
        media_type=upstream.content_type,
        headers={
            "Cache-Control": f"public, max-age={service.settings.proxy_cache_max_age}",
            "Access-Control-Allow-Origin": "*",
        },
        background=BackgroundTask(upstream.aclose),
    )


async def _open_ref(ref: str, service: LinkResolutionService, streamer: ImageStreamer) -> Optional[UpstreamImage]:
    target = await service.proxy_target(ref)
    if target is None:
        logger.warning(f"[ImageProxy] Unknown or unresolvable ref: {ref[:32]}")
        return None

    try:
        return await streamer.open(target.upstream_url, target.mime_type)
    except HandleExpired as e:
        logger.info(f"[ImageProxy] Handle expired for {target.raw_link[:60]}: {e.reason}")

    # One refresh, one more try
    target = await service.proxy_target(ref, force_refresh=True)
    if target is None:
        return None
    return await streamer.open(target.upstream_url, target.mime_type)


@router.get("/resolve/{ref}")
async def resolve_proxy(ref: str, request: Request):
    """
    Stream the image registered under `ref`.

    Example:
        GET /resolve/3f2a9c0d1e4b5a6978877665
    """
    service = get_link_service(request)
    try:
        upstream = await _open_ref(ref, service, get_streamer(request))
    except ResolutionError as e:
        logger.warning(f"[ImageProxy] Fetch failed for ref {ref[:32]}: {e.reason}")
        return _placeholder(service)

    if upstream is None:
        return _placeholder(service)
    logger.debug(f"[ImageProxy] Relaying ref {ref[:32]} ({upstream.content_type})")
    return _relay(upstream, service)


@router.get("/image-proxy")
async def proxy_image(request: Request, url: str = Query("", description="URL of the image to proxy")):
    """
    Proxy a direct image URL produced by the resolver.

    Only URLs the resolver itself would proxy are accepted; anything else
    is redirected to the placeholder so this is not an open proxy.

    Example:
        GET /image-proxy?url=https%3A%2F%2Fdownloader.disk.yandex.ru%2Fa.jpg
    """
    service = get_link_service(request)
    if not service.should_proxy(url):
        logger.warning(f"[ImageProxy] Refused: {url[:60]}")
        return _placeholder(service)

    try:
        upstream = await get_streamer(request).open(url)
    except ResolutionError as e:
        logger.warning(f"[ImageProxy] Fetch failed: {url[:60]} - {e.reason}")
        return _placeholder(service)

    logger.info(f"[ImageProxy] Proxied: {url[:60]}...")
    return _relay(upstream, service)
