"""
URL Classifier

Pure, total mapping from a raw catalog link to a ClassifiedLink.
No I/O. Anything that cannot be parsed is UNKNOWN, never an exception.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from .models import ClassifiedLink, LinkKind

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp", "bmp", "svg", "avif")

# Hosts that already serve raw bytes for provider files
DIRECT_MIRROR_HOSTS = ("getfile.dokpub.com",)

_IMAGE_EXT_RE = re.compile(r"\.(%s)$" % "|".join(IMAGE_EXTENSIONS), re.IGNORECASE)
_IMGUR_ID_RE = re.compile(r"^[A-Za-z0-9]{5,10}$")

# Single-segment imgur.com paths that are site pages, not images
_IMGUR_RESERVED = {"a", "gallery", "user", "t", "r", "upload", "search", "signin", "register"}


def _normalize(raw: str) -> str:
    link = raw.strip()
    if link.startswith("//"):
        return "https:" + link
    if not re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", link):
        return "https://" + link
    return link


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _is_yandex_host(host: str) -> bool:
    if _host_matches(host, "yadi.sk"):
        return True
    labels = host.split(".")
    return "yandex" in labels[:-1]


def _is_imgur_host(host: str) -> bool:
    return _host_matches(host, "imgur.com")


def has_image_extension(url: str) -> bool:
    """True when the URL path (query and fragment ignored) ends in an image extension."""
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    return bool(_IMAGE_EXT_RE.search(path))


def _imgur_id(segment: str) -> Optional[str]:
    # New-style gallery slugs look like "some-title-AbC12de"
    candidate = segment.rsplit("-", 1)[-1]
    candidate = candidate.split(".", 1)[0]
    if _IMGUR_ID_RE.match(candidate):
        return candidate
    return None


def _classify_yandex(raw: str, normalized: str, segments: list) -> ClassifiedLink:
    if len(segments) >= 2 and segments[0] == "d":
        return ClassifiedLink(LinkKind.YANDEX_FOLDER, raw, normalized, segments[1])
    if len(segments) >= 2 and segments[0] == "i":
        return ClassifiedLink(LinkKind.YANDEX_FILE, raw, normalized, segments[1])
    if len(segments) >= 3 and segments[0] == "client" and segments[1] == "disk":
        return ClassifiedLink(LinkKind.YANDEX_FILE, raw, normalized, "/".join(segments[2:]))
    return ClassifiedLink(LinkKind.UNKNOWN, raw, normalized)


def _classify_imgur(raw: str, normalized: str, segments: list) -> ClassifiedLink:
    if len(segments) >= 2 and segments[0] in ("a", "gallery"):
        album_id = _imgur_id(segments[1])
        if album_id:
            return ClassifiedLink(LinkKind.IMGUR_ALBUM, raw, normalized, album_id)
    if len(segments) == 1 and segments[0].lower() not in _IMGUR_RESERVED:
        image_id = _imgur_id(segments[0])
        if image_id:
            return ClassifiedLink(LinkKind.IMGUR_IMAGE, raw, normalized, image_id)
    return ClassifiedLink(LinkKind.UNKNOWN, raw, normalized)


def classify(raw: str) -> ClassifiedLink:
    """
    Classify a raw link.

    Most specific rule wins: a link whose path already ends in an image
    extension is DIRECT_IMAGE even on a provider host, since it needs no
    resolution work.
    """
    if not isinstance(raw, str) or not raw.strip():
        return ClassifiedLink(LinkKind.UNKNOWN, raw if isinstance(raw, str) else "", "")

    normalized = _normalize(raw)
    try:
        parsed = urlparse(normalized)
        host = (parsed.hostname or "").lower()
    except ValueError:
        return ClassifiedLink(LinkKind.UNKNOWN, raw, normalized)

    if not host:
        return ClassifiedLink(LinkKind.UNKNOWN, raw, normalized)

    if _IMAGE_EXT_RE.search(parsed.path) or any(_host_matches(host, h) for h in DIRECT_MIRROR_HOSTS):
        return ClassifiedLink(LinkKind.DIRECT_IMAGE, raw, normalized)

    segments = [s for s in parsed.path.split("/") if s]

    if _is_yandex_host(host):
        return _classify_yandex(raw, normalized, segments)
    if _is_imgur_host(host):
        return _classify_imgur(raw, normalized, segments)

    return ClassifiedLink(LinkKind.UNKNOWN, raw, normalized)
