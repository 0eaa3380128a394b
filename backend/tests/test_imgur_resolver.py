"""
Imgur resolver tests.
"""

import httpx
import pytest

from link_resolver.classifier import classify
from link_resolver.models import ClassifiedLink, LinkKind, Resolved, Unresolvable
from link_resolver.orchestrator import FallbackOrchestrator, RetryPolicy
from link_resolver.providers.base import ProviderHttp
from link_resolver.providers.imgur import IMGUR_API_BASE, IMGUR_DIRECT_BASE, ImgurResolver
from link_resolver.rate_limiter import RateLimiter

ALBUM_ID = "AbC12de"
ALBUM_LINK = f"https://imgur.com/a/{ALBUM_ID}"
ALBUM_API = f"{IMGUR_API_BASE}/album/{ALBUM_ID}/images"


def guess_url(ext, image_id=ALBUM_ID):
    return f"{IMGUR_DIRECT_BASE}/{image_id}.{ext}"


@pytest.fixture
def resolver(service):
    return service.resolvers[LinkKind.IMGUR_ALBUM]


class TestAlbum:

    @pytest.mark.asyncio
    async def test_first_listed_image(self, resolver, upstream):
        upstream.json(ALBUM_API, {"success": True, "data": [
            {"id": "v1", "type": "video/mp4", "link": "https://i.imgur.com/v1.mp4"},
            {"id": "p1", "type": "image/jpeg", "link": "https://i.imgur.com/p1.jpg"},
            {"id": "p2", "type": "image/png", "link": "https://i.imgur.com/p2.png"},
        ]})

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert outcome == Resolved(value="https://i.imgur.com/p1.jpg", volatile=True, mime_type="image/jpeg")
        assert upstream.calls[0].headers["Authorization"] == "Client-ID test-client-id"

    @pytest.mark.asyncio
    async def test_api_failure_falls_back_to_guesses_in_order(self, resolver, upstream):
        upstream.add("GET", ALBUM_API, httpx.ConnectTimeout("timed out"))
        upstream.add("HEAD", guess_url("jpg"), httpx.Response(404))
        upstream.image(guess_url("png"), content_type="image/png")
        upstream.image(guess_url("jpeg"))
        upstream.image(guess_url("webp"), content_type="image/webp")

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert isinstance(outcome, Resolved)
        assert outcome.value == guess_url("png")
        probes = [str(c.url) for c in upstream.calls if c.method == "HEAD"]
        assert probes == [guess_url("jpg"), guess_url("png")]
        # metadata method always runs first
        assert upstream.calls[0].url.path.startswith("/3/album/")

    @pytest.mark.asyncio
    async def test_guess_order_is_fixed(self, resolver, upstream):
        upstream.add("GET", ALBUM_API, httpx.Response(500))

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert isinstance(outcome, Unresolvable)
        probes = [str(c.url) for c in upstream.calls if c.method == "HEAD"]
        assert probes == [guess_url(ext) for ext in ("jpg", "png", "jpeg", "webp")]

    @pytest.mark.asyncio
    async def test_removed_placeholder_counts_as_missing(self, resolver, upstream):
        upstream.add("GET", ALBUM_API, httpx.Response(404))
        upstream.add("HEAD", guess_url("jpg"), httpx.Response(
            302, headers={"location": "https://i.imgur.com/removed.png"},
        ))
        upstream.image("https://i.imgur.com/removed.png", content_type="image/png")
        upstream.image(guess_url("png"), content_type="image/png")

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert outcome.value == guess_url("png")

    @pytest.mark.asyncio
    async def test_empty_album_then_guess(self, resolver, upstream):
        upstream.json(ALBUM_API, {"success": True, "data": []})
        upstream.image(guess_url("jpg"))

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert outcome.value == guess_url("jpg")

    @pytest.mark.asyncio
    async def test_missing_client_id_skips_api(self, resolver, upstream):
        resolver.client_id = None
        upstream.image(guess_url("jpg"))

        outcome = await resolver.resolve(classify(ALBUM_LINK))

        assert outcome.value == guess_url("jpg")
        assert upstream.calls_to(ALBUM_API) == []

    @pytest.mark.asyncio
    async def test_wrongly_typed_album_item_falls_back_to_guess(self, resolver, upstream):
        upstream.json(ALBUM_API, {"success": True, "data": [{"type": 7, "link": "https://i.imgur.com/p1.jpg"}]})
        upstream.image(guess_url("jpg"))

        link = classify(ALBUM_LINK)
        outcome, run = await resolver.orchestrator.run_traced(link, resolver.methods_for(link))

        assert outcome.value == guess_url("jpg")
        assert "unexpected field types" in run.failures[0].reason
        # malformed answers are not retried
        assert len(upstream.calls_to(ALBUM_API)) == 1


class TestImage:

    @pytest.mark.asyncio
    async def test_page_link_guesses_extension(self, resolver, upstream):
        upstream.image(guess_url("jpg", "XyZ98ab"))

        outcome = await resolver.resolve(classify("https://imgur.com/XyZ98ab"))

        assert outcome.value == guess_url("jpg", "XyZ98ab")
        assert all(c.method == "HEAD" for c in upstream.calls)

    @pytest.mark.asyncio
    async def test_link_with_extension_is_probed_directly(self, resolver, upstream):
        link = ClassifiedLink(LinkKind.IMGUR_IMAGE, "https://i.imgur.com/XyZ98ab.png",
                              "https://i.imgur.com/XyZ98ab.png", "XyZ98ab")
        upstream.image(link.normalized, content_type="image/png")

        outcome = await resolver.resolve(link)

        assert outcome.value == link.normalized
        assert len(upstream.calls) == 1


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_album_api_calls_are_spaced(self, upstream, clock):
        issued = []

        def album(request):
            issued.append(clock())
            return httpx.Response(200, json={"data": [{"type": "image/jpeg", "link": "https://i.imgur.com/p.jpg"}]})

        ids = ["AAAAA1", "BBBBB2", "CCCCC3", "DDDDD4"]
        for image_id in ids:
            upstream.add("GET", f"{IMGUR_API_BASE}/album/{image_id}/images", album)

        http = ProviderHttp(httpx.AsyncClient(transport=upstream.transport()))
        resolver = ImgurResolver(
            http,
            FallbackOrchestrator(RetryPolicy(retry_delay=0), sleep=clock.sleep),
            limiter=RateLimiter("imgur", 1.0, clock=clock, sleep=clock.sleep),
            client_id="test-client-id",
        )

        for image_id in ids:
            outcome = await resolver.resolve(classify(f"https://imgur.com/a/{image_id}"))
            assert isinstance(outcome, Resolved)

        await http.client.aclose()

        gaps = [b - a for a, b in zip(issued, issued[1:])]
        assert len(gaps) == 3
        assert all(gap >= 1.0 for gap in gaps)
