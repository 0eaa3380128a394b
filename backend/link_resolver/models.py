"""
Link Resolver Models

Data structures shared by the classifier, the provider resolvers,
the orchestrator and the resolution cache.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


# ============================================
# Enums
# ============================================

class LinkKind(str, Enum):
    """Classification of a raw catalog link"""
    DIRECT_IMAGE = "direct_image"
    YANDEX_FOLDER = "yandex_folder"
    YANDEX_FILE = "yandex_file"
    IMGUR_ALBUM = "imgur_album"
    IMGUR_IMAGE = "imgur_image"
    UNKNOWN = "unknown"


# ============================================
# Links
# ============================================

@dataclass(frozen=True)
class ClassifiedLink:
    """
    A raw link together with its classification.

    `normalized` is the stripped link with a scheme; `identifier` is the
    provider-side id (Imgur hash, Yandex public key) when one applies.
    """
    kind: LinkKind
    raw: str
    normalized: str
    identifier: Optional[str] = None


@dataclass
class ResourceDescriptor:
    """Provider metadata for a file or a folder."""
    is_container: bool
    mime_type: Optional[str] = None
    name: Optional[str] = None
    path: Optional[str] = None
    child_items: List["ResourceDescriptor"] = field(default_factory=list)
    download_handle: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return isinstance(self.mime_type, str) and self.mime_type.lower().startswith("image/")

    def first_image(self) -> Optional["ResourceDescriptor"]:
        """First child that is an image, in provider order."""
        for child in self.child_items:
            if not child.is_container and child.is_image:
                return child
        return None


# ============================================
# Resolution outcomes
# ============================================

@dataclass(frozen=True)
class Resolved:
    """
    Successful resolution.

    value: absolute URL of the image bytes
    via_proxy: serve through /resolve/{ref} instead of handing out the URL
    ttl: seconds the result stays valid (None = process lifetime)
    volatile: upstream may vanish silently, re-probe cached copies
    mime_type: content type reported by the provider, if any
    """
    value: str
    via_proxy: bool = False
    ttl: Optional[float] = None
    volatile: bool = False
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class AttemptRecord:
    """One failed attempt of one resolution method"""
    method: str
    attempt: int
    reason: str


@dataclass(frozen=True)
class Unresolvable:
    """Terminal failure, with every failed attempt that led to it."""
    reason: str
    attempts: Tuple[AttemptRecord, ...] = ()


ResolutionOutcome = Union[Resolved, Unresolvable]
