"""
Image Proxy Module

Re-serves resolved images under our own origin, avoiding mixed-content
and hot-linking failures in the browser.

Features:
- Streaming relay with mirrored content type
- Opaque refs only, provider links never reach the client
- Expired download handles refreshed once per request
- Placeholder redirect on any failure
"""

from .routes_fastapi import router
from .streamer import ImageStreamer

__all__ = ["router", "ImageStreamer"]
