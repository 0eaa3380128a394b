"""
Resolver Configuration

All knobs come from environment variables, read once at startup.
Missing provider credentials are allowed: the affected resolution
methods fail and the fallback chain moves on.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_PROXY_HOSTS = (
    "yandex.ru",
    "yandex.net",
    "yandex.com",
    "yadi.sk",
    "getfile.dokpub.com",
)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


@dataclass
class ResolverSettings:
    """Configuration for link resolution and the streaming proxy."""
    # Credentials
    imgur_client_id: Optional[str] = None
    yandex_oauth_token: Optional[str] = None

    # Timeouts (seconds)
    api_timeout: float = 5.0            # metadata calls and existence probes
    stream_timeout: float = 30.0        # final byte fetch

    # Retry policy
    max_retries: int = 2
    retry_delay: float = 0.5

    # Rate limits (minimum spacing between API calls, seconds)
    imgur_min_interval: float = 1.0
    yandex_min_interval: float = 0.2

    # Cache
    yandex_handle_ttl: float = 3000.0   # download handles expire upstream
    verify_volatile_cache: bool = False

    # Proxy
    proxy_cache_max_age: int = 86400
    max_image_size_mb: int = 10
    proxy_hosts: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_PROXY_HOSTS)
    proxy_insecure_links: bool = False
    placeholder_path: str = "/placeholder.jpg"

    @classmethod
    def from_env(cls) -> "ResolverSettings":
        return cls(
            imgur_client_id=os.getenv("IMGUR_CLIENT_ID") or None,
            yandex_oauth_token=os.getenv("YANDEX_DISK_OAUTH_TOKEN") or None,
            api_timeout=_env_float("API_TIMEOUT_SECONDS", 5.0),
            stream_timeout=_env_float("STREAM_TIMEOUT_SECONDS", 30.0),
            max_retries=_env_int("RESOLVE_MAX_RETRIES", 2),
            retry_delay=_env_float("RESOLVE_RETRY_DELAY_SECONDS", 0.5),
            imgur_min_interval=_env_float("IMGUR_MIN_INTERVAL_SECONDS", 1.0),
            yandex_min_interval=_env_float("YANDEX_MIN_INTERVAL_SECONDS", 0.2),
            yandex_handle_ttl=_env_float("YANDEX_HANDLE_TTL_SECONDS", 3000.0),
            verify_volatile_cache=_env_bool("VERIFY_VOLATILE_CACHE", False),
            proxy_cache_max_age=_env_int("PROXY_CACHE_MAX_AGE", 86400),
            max_image_size_mb=_env_int("IMAGE_MAX_SIZE_MB", 10),
            proxy_hosts=_env_list("PROXY_HOSTS", DEFAULT_PROXY_HOSTS),
            proxy_insecure_links=_env_bool("PROXY_INSECURE_LINKS", False),
            placeholder_path=os.getenv("PLACEHOLDER_PATH", "/placeholder.jpg"),
        )

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024
