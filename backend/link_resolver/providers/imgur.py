"""
Imgur resolver (album/image family).

Fallback chains:
- album (/a/<id>, /gallery/<id>): album_api -> extension_guess
- image (/<id>):                  direct_link -> extension_guess

The album API is rate limited (Imgur enforces per-client quotas).
Imgur serves a redirect to removed.png for deleted images, so a
probe landing there counts as a miss.
"""

import logging
from typing import List, Optional, Sequence

from ..classifier import has_image_extension
from ..errors import (
    MalformedResponse,
    MethodNotApplicable,
    MissingCredentials,
    NoImageInContainer,
    ResolutionError,
)
from ..models import ClassifiedLink, LinkKind, Resolved
from ..orchestrator import FallbackOrchestrator, ResolutionMethod
from ..rate_limiter import RateLimiter
from .base import ProviderHttp, ProviderResolver

logger = logging.getLogger(__name__)

IMGUR_API_BASE = "https://api.imgur.com/3"
IMGUR_DIRECT_BASE = "https://i.imgur.com"

# Order matters: first reachable guess wins
GUESS_EXTENSIONS = ("jpg", "png", "jpeg", "webp")


class ImgurResolver(ProviderResolver):
    """Resolves Imgur album and image pages to i.imgur.com URLs."""

    name = "imgur"
    kinds = (LinkKind.IMGUR_ALBUM, LinkKind.IMGUR_IMAGE)

    def __init__(
        self,
        http: ProviderHttp,
        orchestrator: FallbackOrchestrator,
        limiter: Optional[RateLimiter] = None,
        client_id: Optional[str] = None,
        api_base: str = IMGUR_API_BASE,
        direct_base: str = IMGUR_DIRECT_BASE,
        extensions: Sequence[str] = GUESS_EXTENSIONS,
    ):
        super().__init__(http, orchestrator, limiter)
        self.client_id = client_id
        self.api_base = api_base.rstrip("/")
        self.direct_base = direct_base.rstrip("/")
        self.extensions = tuple(extensions)

    def methods_for(self, link: ClassifiedLink) -> List[ResolutionMethod]:
        if link.kind == LinkKind.IMGUR_ALBUM:
            first = ResolutionMethod("album_api", self._resolve_via_album_api)
        else:
            first = ResolutionMethod("direct_link", self._resolve_direct_link)
        return [first, ResolutionMethod("extension_guess", self._resolve_via_extension_guess)]

    async def _resolve_via_album_api(self, link: ClassifiedLink) -> Resolved:
        if not self.client_id:
            raise MissingCredentials("IMGUR_CLIENT_ID is not configured")
        if not link.identifier:
            raise MethodNotApplicable("link carries no album id")

        data = await self.http.get_json(
            f"{self.api_base}/album/{link.identifier}/images",
            headers={"Authorization": f"Client-ID {self.client_id}"},
            limiter=self.limiter,
        )
        images = data.get("data")
        if not isinstance(images, list):
            raise MalformedResponse("album listing has no data array")

        for image in images:
            if not isinstance(image, dict):
                continue
            mime = image.get("type") or ""
            url = image.get("link")
            if not isinstance(mime, str) or (url is not None and not isinstance(url, str)):
                raise MalformedResponse(f"album item has unexpected field types: {image!r:.80}")
            mime = mime.lower()
            if url and (not mime or mime.startswith("image/")):
                return Resolved(value=url, volatile=True, mime_type=mime or None)

        raise NoImageInContainer(f"no image in album ({len(images)} items listed)")

    async def _resolve_direct_link(self, link: ClassifiedLink) -> Resolved:
        if not has_image_extension(link.normalized):
            raise MethodNotApplicable("link has no image extension")
        probe = await self.http.probe(link.normalized)
        if not probe.found_image:
            raise ResolutionError(f"direct link probe failed ({probe.error or probe.status_code})")
        return Resolved(value=link.normalized, volatile=True, mime_type=probe.content_type or None)

    async def _resolve_via_extension_guess(self, link: ClassifiedLink) -> Resolved:
        if not link.identifier:
            raise MethodNotApplicable("link carries no image id")

        for ext in self.extensions:
            url = f"{self.direct_base}/{link.identifier}.{ext}"
            probe = await self.http.probe(url)
            if probe.found_image:
                logger.info(f"[Imgur] Guessed .{ext} for {link.identifier}")
                return Resolved(value=url, volatile=True, mime_type=probe.content_type or None)
            logger.debug(f"[Imgur] Guess .{ext} missed for {link.identifier} ({probe.error or probe.status_code})")

        raise ResolutionError(f"no guessed extension reachable (tried {', '.join(self.extensions)})")
