"""
Image Streamer

Opens the final byte fetch for a resolved image and hands back the
streaming response, mapping every upstream failure to a ResolutionError.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import httpx

from link_resolver.config import ResolverSettings
from link_resolver.errors import HandleExpired, UpstreamRejected, UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)

# Upstream answers that mean "this handle is dead", not "try later"
EXPIRED_STATUSES = (403, 404, 410)

EXT_TO_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".bmp": "image/bmp",
    ".avif": "image/avif",
}

GENERIC_TYPES = ("", "application/octet-stream", "binary/octet-stream")


@dataclass
class UpstreamImage:
    """
    An open upstream response, ready to be relayed.

    `body` is set when the response had to be read up front (no declared
    length); otherwise bytes are streamed and cut off at `max_bytes`.
    """
    response: httpx.Response
    content_type: str
    max_bytes: int
    body: Optional[bytes] = None

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        if self.body is not None:
            yield self.body
            return
        relayed = 0
        async for chunk in self.response.aiter_bytes():
            relayed += len(chunk)
            if relayed > self.max_bytes:
                logger.warning(f"[ImageProxy] Upstream exceeded {self.max_bytes} bytes, truncated: {str(self.response.url)[:60]}")
                break
            yield chunk

    async def aclose(self) -> None:
        await self.response.aclose()


def guess_content_type(url: str, upstream_type: str, fallback_mime: Optional[str] = None) -> str:
    """
    Mirror the upstream content type; only when upstream sends nothing
    useful, fall back to the provider's mime type or the URL extension.
    """
    if upstream_type not in GENERIC_TYPES:
        return upstream_type
    if fallback_mime:
        return fallback_mime
    path = url.split("?", 1)[0].lower()
    for ext, mime in EXT_TO_MIME.items():
        if path.endswith(ext):
            return mime
    return upstream_type or "application/octet-stream"


class ImageStreamer:
    """
    Usage:
        upstream = await streamer.open(url)
        try:
            async for chunk in upstream.iter_bytes(): ...
        finally:
            await upstream.aclose()
    """

    def __init__(self, client: httpx.AsyncClient, settings: ResolverSettings):
        self.client = client
        self.settings = settings

    async def open(self, url: str, fallback_mime: Optional[str] = None) -> UpstreamImage:
        request = self.client.build_request(
            "GET",
            url,
            headers={"Accept": "image/*,*/*;q=0.8"},
            timeout=self.settings.stream_timeout,
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException:
            raise UpstreamTimeout(f"timeout fetching {url[:60]}")
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{type(e).__name__} fetching {url[:60]}")

        if not response.is_success:
            await response.aclose()
            if response.status_code in EXPIRED_STATUSES:
                raise HandleExpired(f"HTTP {response.status_code} fetching {url[:60]}")
            raise UpstreamRejected(f"HTTP {response.status_code} fetching {url[:60]}", response.status_code)

        limit = self.settings.max_image_size_bytes
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            await response.aclose()
            raise UpstreamRejected(f"image too large ({declared} bytes)", 413)

        body = None
        if not (declared and declared.isdigit()):
            # Chunked: read up to the limit before committing to a 200
            body = await self._read_capped(response, limit, url)

        upstream_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        content_type = guess_content_type(url, upstream_type, fallback_mime)
        if not content_type.startswith("image/"):
            logger.warning(f"[ImageProxy] Non-image content-type: {content_type} for {url[:60]}...")

        return UpstreamImage(response=response, content_type=content_type, max_bytes=limit, body=body)

    async def _read_capped(self, response: httpx.Response, limit: int, url: str) -> bytes:
        chunks: List[bytes] = []
        total = 0
        try:
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > limit:
                    break
                chunks.append(chunk)
        except httpx.TimeoutException:
            await response.aclose()
            raise UpstreamTimeout(f"timeout reading {url[:60]}")
        except httpx.HTTPError as e:
            await response.aclose()
            raise UpstreamUnavailable(f"{type(e).__name__} reading {url[:60]}")

        if total > limit:
            await response.aclose()
            raise UpstreamRejected(f"image too large (over {limit} bytes)", 413)
        return b"".join(chunks)
