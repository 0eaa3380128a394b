"""
Link resolver test configuration.

Fixtures:
- upstream: a scripted fake of every external HTTP service, recording calls
- settings: resolver settings with retries and rate limits made instant
- service: a LinkResolutionService whose HTTP client talks to `upstream`

Outbound HTTP never leaves the process: the services under test get an
httpx.MockTransport that dispatches to FakeUpstream.
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio

# Make the backend packages importable
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from link_resolver.config import ResolverSettings
from link_resolver.service import build_link_service


Responder = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


# ============================================
# Fake upstream
# ============================================

class FakeUpstream:
    """
    Scripted external HTTP services.

    Routes are keyed on (method, URL without query string). A responder is
    a Response, an exception to raise, or a callable taking the request.
    Unrouted requests get a 404.
    """

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Responder] = {}

    def add(self, method: str, url: str, responder: Responder) -> None:
        self._routes[(method.upper(), url)] = responder

    def json(self, url: str, payload: dict, status_code: int = 200) -> None:
        self.add("GET", url, httpx.Response(status_code, json=payload))

    def image(self, url: str, content_type: str = "image/jpeg", body: bytes = b"\xff\xd8fake") -> None:
        headers = {"content-type": content_type}
        self.add("HEAD", url, httpx.Response(200, headers=headers))
        self.add("GET", url, httpx.Response(200, headers=headers, content=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        base_url = str(request.url).split("?", 1)[0]
        responder = self._routes.get((request.method, base_url))
        if responder is None:
            return httpx.Response(404)
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        # Fresh copy so the same route can answer many times
        return httpx.Response(responder.status_code, headers=responder.headers, content=responder.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, url: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            c for c in self.calls
            if str(c.url).split("?", 1)[0] == url and (method is None or c.method == method)
        ]

    def reset_calls(self) -> None:
        self.calls.clear()


class FakeClock:
    """Manual clock; sleep() advances it instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return ResolverSettings(
        imgur_client_id="test-client-id",
        retry_delay=0,
        imgur_min_interval=0,
        yandex_min_interval=0,
    )


@pytest_asyncio.fixture
async def service(settings, upstream, clock):
    service = build_link_service(settings, transport=upstream.transport(), sleep=clock.sleep)
    yield service
    await service.aclose()
