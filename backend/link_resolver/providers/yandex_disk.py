"""
Yandex Disk resolver (folder/file family).

Fallback chains:
- public folder (/d/<key>):      public_metadata
- public file (/i/<key>):        public_metadata -> public_download
- owner link (/client/disk/...): dokpub_mirror

public_metadata:
1. GET public/resources for the link (rate limited)
2. folder: first child whose mime_type is image/*, in listing order
   file: must itself be image/*
3. GET public/resources/download for the selected item (rate limited)
4. the returned href is served through the streaming proxy
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, quote, unquote, urlparse

from ..errors import (
    MalformedResponse,
    MethodNotApplicable,
    NoImageInContainer,
    ResourceNotAnImage,
    UpstreamUnavailable,
)
from ..models import ClassifiedLink, LinkKind, Resolved, ResourceDescriptor
from ..orchestrator import FallbackOrchestrator, ResolutionMethod
from ..rate_limiter import RateLimiter
from .base import ProviderHttp, ProviderResolver

logger = logging.getLogger(__name__)

YANDEX_API_BASE = "https://cloud-api.yandex.net/v1/disk/public/resources"
DOKPUB_MIRROR_BASE = "https://getfile.dokpub.com/yandex/get"
LISTING_LIMIT = 100


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedResponse(f"field {key!r} is {type(value).__name__}, expected a string")
    return value


def parse_descriptor(data: Dict[str, Any]) -> ResourceDescriptor:
    """
    Build a ResourceDescriptor from a public/resources answer.

    Any field of the wrong shape raises MalformedResponse, so the
    orchestrator can move on to the next method.
    """
    resource_type = data.get("type")
    if resource_type not in ("dir", "file"):
        raise MalformedResponse(f"unexpected resource type: {resource_type!r}")

    children: List[ResourceDescriptor] = []
    if resource_type == "dir":
        embedded = data.get("_embedded") or {}
        if not isinstance(embedded, dict):
            raise MalformedResponse("folder listing is not an object")
        items = embedded.get("items")
        if not isinstance(items, list):
            raise MalformedResponse("folder listing has no items")
        for item in items:
            if not isinstance(item, dict):
                continue
            children.append(ResourceDescriptor(
                is_container=item.get("type") == "dir",
                mime_type=_optional_str(item, "mime_type"),
                name=_optional_str(item, "name"),
                path=_optional_str(item, "path"),
            ))

    return ResourceDescriptor(
        is_container=resource_type == "dir",
        mime_type=_optional_str(data, "mime_type"),
        name=_optional_str(data, "name"),
        path=_optional_str(data, "path"),
        child_items=children,
    )


def _href_content_type(href: str) -> Optional[str]:
    """Download hrefs carry the file's content type in their query string."""
    try:
        values = parse_qs(urlparse(href).query).get("content_type")
    except ValueError:
        return None
    return values[0].lower() if values else None


class YandexDiskResolver(ProviderResolver):
    """Resolves Yandex Disk public links to time-limited download handles."""

    name = "yandex_disk"
    kinds = (LinkKind.YANDEX_FOLDER, LinkKind.YANDEX_FILE)

    def __init__(
        self,
        http: ProviderHttp,
        orchestrator: FallbackOrchestrator,
        limiter: Optional[RateLimiter] = None,
        oauth_token: Optional[str] = None,
        handle_ttl: float = 3000.0,
        api_base: str = YANDEX_API_BASE,
    ):
        super().__init__(http, orchestrator, limiter)
        self.oauth_token = oauth_token
        self.handle_ttl = handle_ttl
        self.api_base = api_base.rstrip("/")

    def methods_for(self, link: ClassifiedLink) -> List[ResolutionMethod]:
        if "/client/disk/" in link.normalized:
            return [ResolutionMethod("dokpub_mirror", self._resolve_via_mirror)]
        methods = [ResolutionMethod("public_metadata", self._resolve_via_metadata)]
        if link.kind == LinkKind.YANDEX_FILE:
            methods.append(ResolutionMethod("public_download", self._resolve_via_download))
        return methods

    @property
    def _headers(self) -> Dict[str, str]:
        if self.oauth_token:
            return {"Authorization": f"OAuth {self.oauth_token}"}
        return {}

    async def fetch_descriptor(self, link: ClassifiedLink) -> ResourceDescriptor:
        data = await self.http.get_json(
            self.api_base,
            params={"public_key": link.normalized, "limit": LISTING_LIMIT},
            headers=self._headers,
            limiter=self.limiter,
        )
        return parse_descriptor(data)

    async def fetch_download_href(self, link: ClassifiedLink, path: Optional[str] = None) -> str:
        params = {"public_key": link.normalized}
        if path:
            params["path"] = path
        data = await self.http.get_json(
            f"{self.api_base}/download",
            params=params,
            headers=self._headers,
            limiter=self.limiter,
        )
        href = data.get("href")
        if not href or not isinstance(href, str):
            raise MalformedResponse("provider returned no download handle")
        return href

    async def _resolve_via_metadata(self, link: ClassifiedLink) -> Resolved:
        descriptor = await self.fetch_descriptor(link)

        if descriptor.is_container:
            selected = descriptor.first_image()
            if selected is None:
                raise NoImageInContainer(
                    f"no image in container ({len(descriptor.child_items)} items listed)"
                )
            path = selected.path
        else:
            if not descriptor.is_image:
                raise ResourceNotAnImage(f"resource is not an image ({descriptor.mime_type})")
            selected = descriptor
            path = None

        selected.download_handle = await self.fetch_download_href(link, path)
        logger.info(f"[YandexDisk] Selected {selected.name} ({selected.mime_type}) for {link.raw[:60]}")
        return Resolved(
            value=selected.download_handle,
            via_proxy=True,
            ttl=self.handle_ttl,
            mime_type=selected.mime_type,
        )

    async def _resolve_via_download(self, link: ClassifiedLink) -> Resolved:
        href = await self.fetch_download_href(link)
        content_type = _href_content_type(href)
        if content_type and not content_type.startswith("image/"):
            raise ResourceNotAnImage(f"resource is not an image ({content_type})")
        return Resolved(value=href, via_proxy=True, ttl=self.handle_ttl, mime_type=content_type)

    async def _resolve_via_mirror(self, link: ClassifiedLink) -> Resolved:
        if not link.identifier:
            raise MethodNotApplicable("link carries no disk path")
        disk_path = quote(unquote(link.identifier), safe="")
        url = f"{DOKPUB_MIRROR_BASE}/disk:/{disk_path}"
        probe = await self.http.probe(url)
        if not probe.ok:
            raise UpstreamUnavailable(
                f"mirror probe failed ({probe.error or probe.status_code})",
                retryable=probe.error is not None,
            )
        return Resolved(value=url, via_proxy=True, mime_type=probe.content_type or None)
