"""
Link Resolution Service

Entry point used by catalog assembly:

    reference = await service.resolve_image_reference(raw_link)

Flow: classify -> cache lookup -> (miss) provider resolver driven by the
fallback orchestrator -> cache the dereferenceable result. Failures are
never cached and never raised; the caller gets the placeholder path.
"""

import asyncio
import logging
from typing import Dict, Mapping, Optional
from urllib.parse import quote, urlparse

import httpx

from .cache_store import CacheEntry, ResolutionCache
from .classifier import classify
from .config import ResolverSettings
from .models import ClassifiedLink, LinkKind, Resolved, Unresolvable
from .orchestrator import FallbackOrchestrator, RetryPolicy
from .providers.base import BROWSER_HEADERS, ProviderHttp, ProviderResolver
from .providers.imgur import ImgurResolver
from .providers.yandex_disk import YandexDiskResolver
from .proxy_refs import ProxyRefRegistry, ProxyTarget, ref_for
from .rate_limiter import RateLimiterRegistry

logger = logging.getLogger(__name__)

IMAGE_PROXY_PATH = "/image-proxy"


class LinkResolutionService:
    """
    Resolves raw catalog links into references a browser can load.

    Constructed once per process (see build_link_service) and shared by
    the catalog and the streaming proxy.
    """

    def __init__(
        self,
        settings: ResolverSettings,
        cache: ResolutionCache,
        registry: ProxyRefRegistry,
        resolvers: Mapping[LinkKind, ProviderResolver],
        http: ProviderHttp,
    ):
        self.settings = settings
        self.cache = cache
        self.registry = registry
        self.resolvers = dict(resolvers)
        self.http = http
        self._inflight: Dict[str, "asyncio.Future[str]"] = {}

    @property
    def placeholder(self) -> str:
        return self.settings.placeholder_path

    # ============================================
    # Proxy policy
    # ============================================

    def should_proxy(self, url: str) -> bool:
        """Direct URLs on hot-link-hostile hosts (or plain http) go through /image-proxy."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        host = (parsed.hostname or "").lower()
        if not host or parsed.scheme not in ("http", "https"):
            return False
        if any(host == h or host.endswith("." + h) for h in self.settings.proxy_hosts):
            return True
        return parsed.scheme == "http" and self.settings.proxy_insecure_links

    def _direct_reference(self, url: str) -> str:
        if self.should_proxy(url):
            return f"{IMAGE_PROXY_PATH}?url={quote(url, safe='')}"
        return url

    # ============================================
    # Resolution entry point
    # ============================================

    async def resolve_image_reference(self, raw_link: str) -> str:
        """
        Always returns a usable reference: the link itself, an internal
        proxy path, or the placeholder path. Never raises.
        """
        try:
            return await self._resolve_reference(raw_link)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"[LinkResolver] Unexpected failure for {str(raw_link)[:60]}")
            return self.placeholder

    async def _resolve_reference(self, raw_link: str) -> str:
        link = classify(raw_link)

        if link.kind == LinkKind.UNKNOWN:
            # Unrecognized links pass through untouched; blanks get the placeholder
            return raw_link if link.normalized else self.placeholder

        if link.kind == LinkKind.DIRECT_IMAGE:
            if link.raw == link.normalized:
                return self._direct_reference(link.raw)
            return self._direct_reference(link.normalized)

        entry = self.cache.get(link.raw)
        if entry is not None:
            if not (entry.volatile and self.settings.verify_volatile_cache):
                logger.debug(f"[LinkResolver] Cache hit: {link.raw[:60]}")
                return entry.resolved_value
            if await self._still_fresh(entry):
                return entry.resolved_value
            logger.info(f"[LinkResolver] Cached value went stale: {link.raw[:60]}")
            self.cache.invalidate(link.raw)

        # Share one resolution between concurrent callers of the same link.
        # No await between the lookup and the registration below.
        task = self._inflight.get(link.raw)
        if task is None:
            task = asyncio.ensure_future(self._resolve_and_store(link))
            self._inflight[link.raw] = task
            task.add_done_callback(lambda _t, key=link.raw: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _resolve_and_store(self, link: ClassifiedLink) -> str:
        resolver = self.resolvers.get(link.kind)
        if resolver is None:
            logger.warning(f"[LinkResolver] No resolver for {link.kind.value}: {link.raw[:60]}")
            return self.placeholder

        outcome = await resolver.resolve(link)
        if isinstance(outcome, Unresolvable):
            logger.warning(f"[LinkResolver] Unresolvable {link.raw[:60]}: {outcome.reason}")
            return self.placeholder

        self.cleanup_expired()
        value = self._materialize(link, outcome)
        self.cache.put(link.raw, value, ttl=outcome.ttl, kind=link.kind, volatile=outcome.volatile)
        return value

    def _materialize(self, link: ClassifiedLink, outcome: Resolved) -> str:
        """Turn a Resolved outcome into something the browser can load directly."""
        if outcome.via_proxy:
            return self.registry.register(
                link.raw,
                outcome.value,
                mime_type=outcome.mime_type,
                ttl=outcome.ttl,
            )
        return self._direct_reference(outcome.value)

    async def _still_fresh(self, entry: CacheEntry) -> bool:
        if not entry.resolved_value.startswith(("http://", "https://")):
            return True
        probe = await self.http.probe(entry.resolved_value)
        return probe.found_image

    async def refresh(self, raw_link: str) -> str:
        """Drop the cached value for a link and resolve it again."""
        self.cache.invalidate(raw_link)
        return await self.resolve_image_reference(raw_link)

    # ============================================
    # Housekeeping
    # ============================================

    def invalidate(self, raw_link: str) -> bool:
        """Forget a link entirely: its cached value and its proxy ref."""
        self.registry.discard(ref_for(raw_link))
        return self.cache.invalidate(raw_link)

    def clear(self) -> int:
        self.registry.clear()
        return self.cache.clear()

    def cleanup_expired(self) -> int:
        """
        Drop expired cache entries and proxy targets.

        Proxy targets outlive their handle by one handle lifetime so a
        page rendered just before expiry can still refresh through the proxy.
        """
        dropped = self.cache.cleanup_expired()
        self.registry.cleanup_expired(grace=self.settings.yandex_handle_ttl)
        return dropped

    # ============================================
    # Proxy targets
    # ============================================

    async def proxy_target(self, ref: str, force_refresh: bool = False) -> Optional[ProxyTarget]:
        """
        Upstream target for /resolve/{ref}.

        An expired (or, with force_refresh, rejected) handle triggers one
        re-resolution of the raw link behind the ref.
        """
        target = None if force_refresh else self.registry.lookup(ref)
        if target is not None:
            return target

        raw_link = self.registry.raw_link_for(ref)
        if raw_link is None:
            return None

        logger.info(f"[LinkResolver] Refreshing handle for {raw_link[:60]}")
        # The raw link stays known, so a failed refresh is retried on the next request
        self.registry.expire(ref)
        await self.refresh(raw_link)
        return self.registry.lookup(ref)

    async def aclose(self) -> None:
        await self.http.client.aclose()


def build_link_service(
    settings: Optional[ResolverSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep=asyncio.sleep,
) -> LinkResolutionService:
    """
    Wire the resolution stack: one HTTP client, one cache, one rate
    limiter per metered provider, one resolver per link family.
    """
    settings = settings or ResolverSettings.from_env()

    client = httpx.AsyncClient(
        transport=transport,
        timeout=settings.api_timeout,
        follow_redirects=True,
        headers=BROWSER_HEADERS,
    )
    http = ProviderHttp(client, timeout=settings.api_timeout)
    orchestrator = FallbackOrchestrator(
        RetryPolicy(max_retries=settings.max_retries, retry_delay=settings.retry_delay),
        sleep=sleep,
    )
    limiters = RateLimiterRegistry(
        {
            ImgurResolver.name: settings.imgur_min_interval,
            YandexDiskResolver.name: settings.yandex_min_interval,
        },
        sleep=sleep,
    )

    yandex = YandexDiskResolver(
        http,
        orchestrator,
        limiter=limiters.get(YandexDiskResolver.name),
        oauth_token=settings.yandex_oauth_token,
        handle_ttl=settings.yandex_handle_ttl,
    )
    imgur = ImgurResolver(
        http,
        orchestrator,
        limiter=limiters.get(ImgurResolver.name),
        client_id=settings.imgur_client_id,
    )
    if not settings.imgur_client_id:
        logger.warning("[LinkResolver] IMGUR_CLIENT_ID not set, album links fall back to guessing")

    resolvers: Dict[LinkKind, ProviderResolver] = {}
    for resolver in (yandex, imgur):
        for kind in resolver.kinds:
            resolvers[kind] = resolver

    return LinkResolutionService(
        settings=settings,
        cache=ResolutionCache(),
        registry=ProxyRefRegistry(),
        resolvers=resolvers,
        http=http,
    )
