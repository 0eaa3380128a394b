"""
Resolution errors.

Raised by provider resolution methods and absorbed by the
FallbackOrchestrator, which turns them into Unresolvable outcomes.
None of them reaches the caller of resolve_image_reference().
"""

from typing import Optional


class ResolutionError(Exception):
    """Base class. `retryable` tells the orchestrator to retry the same method."""

    retryable = False

    def __init__(self, reason: str, retryable: Optional[bool] = None):
        super().__init__(reason)
        self.reason = reason
        if retryable is not None:
            self.retryable = retryable


class UpstreamTimeout(ResolutionError):
    retryable = True


class UpstreamUnavailable(ResolutionError):
    """Connection refused, DNS failure, reset..."""
    retryable = True


class UpstreamRejected(ResolutionError):
    """Non-2xx answer from a provider API."""

    def __init__(self, reason: str, status_code: int):
        super().__init__(reason, retryable=status_code >= 500 or status_code == 429)
        self.status_code = status_code


class MalformedResponse(ResolutionError):
    pass


class ResourceNotAnImage(ResolutionError):
    pass


class NoImageInContainer(ResolutionError):
    pass


class HandleExpired(ResolutionError):
    """A previously resolved download handle is no longer accepted upstream."""
    pass


class MissingCredentials(ResolutionError):
    pass


class MethodNotApplicable(ResolutionError):
    """The method cannot handle this link shape; skip to the next one."""
    pass
