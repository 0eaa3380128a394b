"""
Provider resolver base types.

ProviderHttp wraps the shared httpx.AsyncClient so that every outbound
call either returns data or raises a ResolutionError subclass; raw httpx
exceptions never leak into resolver code.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..errors import (
    MalformedResponse,
    UpstreamRejected,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from ..models import ClassifiedLink, LinkKind, ResolutionOutcome
from ..orchestrator import FallbackOrchestrator, ResolutionMethod
from ..rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


@dataclass
class ProbeResult:
    """Outcome of a lightweight existence check."""
    ok: bool
    status_code: int = 0
    content_type: str = ""
    final_url: str = ""
    error: Optional[str] = None

    @property
    def found_image(self) -> bool:
        # Imgur redirects deleted images to removed.png with a 200
        if not self.ok or "removed.png" in self.final_url:
            return False
        return not self.content_type or self.content_type.startswith("image/")


class ProviderHttp:
    """
    Outbound HTTP for resolvers.

    Usage:
        http = ProviderHttp(httpx.AsyncClient(follow_redirects=True), timeout=5.0)
        data = await http.get_json(url, params={...}, limiter=limiter)
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = 5.0):
        self.client = client
        self.timeout = timeout

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        limiter: Optional[RateLimiter] = None,
    ) -> Dict[str, Any]:
        if limiter is not None:
            await limiter.acquire()
        try:
            response = await self.client.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException:
            raise UpstreamTimeout(f"timeout calling {_short(url)}")
        except httpx.HTTPStatusError as e:
            raise UpstreamRejected(
                f"HTTP {e.response.status_code} from {_short(url)}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{type(e).__name__} calling {_short(url)}")

        try:
            data = response.json()
        except ValueError:
            raise MalformedResponse(f"non-JSON body from {_short(url)}")
        if not isinstance(data, dict):
            raise MalformedResponse(f"unexpected JSON shape from {_short(url)}")
        return data

    async def probe(self, url: str, limiter: Optional[RateLimiter] = None) -> ProbeResult:
        """
        HEAD the URL (falling back to a ranged GET when HEAD is refused).

        Network failures produce ok=False rather than an exception; a probe
        answers "is it there", and "can't tell" counts as no.
        """
        if limiter is not None:
            await limiter.acquire()
        try:
            response = await self.client.head(url, headers=BROWSER_HEADERS, timeout=self.timeout)
            if response.status_code in (403, 405, 501):
                response = await self.client.get(
                    url,
                    headers={**BROWSER_HEADERS, "Range": "bytes=0-0"},
                    timeout=self.timeout,
                )
        except httpx.TimeoutException:
            logger.debug(f"[ProviderHttp] Probe timeout: {_short(url)}")
            return ProbeResult(ok=False, error="timeout")
        except httpx.HTTPError as e:
            logger.debug(f"[ProviderHttp] Probe error: {_short(url)} - {e}")
            return ProbeResult(ok=False, error=type(e).__name__)

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        return ProbeResult(
            ok=response.is_success,
            status_code=response.status_code,
            content_type=content_type,
            final_url=str(response.url),
        )


def _short(url: str) -> str:
    return url.split("?", 1)[0][:80]


class ProviderResolver:
    """
    Shared capability contract: resolve(link) -> ResolutionOutcome.

    Subclasses declare which LinkKinds they handle and build the ordered
    fallback chain for a link in methods_for().
    """

    name = "provider"
    kinds: Tuple[LinkKind, ...] = ()

    def __init__(self, http: ProviderHttp, orchestrator: FallbackOrchestrator,
                 limiter: Optional[RateLimiter] = None):
        self.http = http
        self.orchestrator = orchestrator
        self.limiter = limiter

    def methods_for(self, link: ClassifiedLink) -> List[ResolutionMethod]:
        raise NotImplementedError

    async def resolve(self, link: ClassifiedLink) -> ResolutionOutcome:
        return await self.orchestrator.run(link, self.methods_for(link))
