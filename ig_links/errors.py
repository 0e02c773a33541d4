"""Exceptions raised while resolving links."""

from __future__ import annotations


class ResolverError(RuntimeError):
    """Base class for failures scoped to a single link."""

    reason = "resolver error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)


class UnhandledPageTypeError(ResolverError):
    """The page carries neither a post nor a story descriptor."""

    reason = "Unhandled page type"


class NoMediaFoundError(ResolverError):
    """The descriptor resolved but normalization produced no media."""

    reason = "No media found"


class UpstreamFetchError(ResolverError):
    """An authenticated API request failed or returned an unexpected shape."""

    reason = "Upstream fetch failed"


class LinkTimeoutError(ResolverError):
    """Resolving a single link took longer than the configured limit."""

    reason = "Link timed out"


class AuthenticationError(RuntimeError):
    """Logging in failed; the whole run cannot start."""
