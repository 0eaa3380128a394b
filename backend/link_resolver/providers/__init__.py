"""
Provider resolvers, one per classified link family.
"""

from .base import ProbeResult, ProviderHttp, ProviderResolver
from .imgur import ImgurResolver
from .yandex_disk import YandexDiskResolver

__all__ = [
    "ProbeResult",
    "ProviderHttp",
    "ProviderResolver",
    "ImgurResolver",
    "YandexDiskResolver",
]
