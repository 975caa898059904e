"""Failure types raised by the fetch pipeline.

Every failure carries a stable ``reason`` code so callers can tell conditions apart
without parsing messages.
"""

from __future__ import annotations

from typing import Optional


class FetchError(Exception):
    """Base class for every failure surfaced by the fetch pipeline."""

    reason = "fetch-failed"

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url

    def __str__(self) -> str:
        message = super().__str__()
        if self.url:
            return f"{message} ({self.url})"
        return message


class UnsafeURL(FetchError):
    """A URL was refused before any connection was attempted."""

    reason = "unsafe-url"


class InvalidURL(UnsafeURL):
    reason = "invalid-url"


class SchemeNotAllowed(UnsafeURL):
    reason = "scheme-not-allowed"


class AddressPrivate(UnsafeURL):
    """The host is, or resolves to, a private or reserved address."""

    reason = "address-private"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        *,
        resolved: bool = False,
    ) -> None:
        super().__init__(message, url)
        if resolved:
            self.reason = "resolves-private"


class LocalHostname(UnsafeURL):
    reason = "local-hostname"


class FetchTimeout(FetchError):
    reason = "timeout"


class RequestFailed(FetchError):
    """Transport-level failure other than a timeout."""

    reason = "request-failed"


class TooManyRedirects(FetchError):
    reason = "too-many-redirects"


class MissingRedirectLocation(FetchError):
    reason = "missing-redirect-location"


class HTTPStatusError(FetchError):
    reason = "http-status"

    def __init__(self, message: str, url: Optional[str] = None, status: int = 0) -> None:
        super().__init__(message, url)
        self.status = status


class DeclaredTooLarge(FetchError):
    reason = "declared-too-large"


class BodyTooLarge(FetchError):
    reason = "body-too-large"


class NoImagesToComposite(FetchError):
    reason = "no-input"


class PersistenceFailed(FetchError):
    reason = "persistence-failed"


class RobotsDisallowed(FetchError):
    reason = "robots-disallowed"


class OriginNotAllowed(FetchError):
    reason = "origin-not-allowed"


class UnsupportedImage(FetchError):
    reason = "unsupported-image"


class ImageDecodeError(FetchError):
    reason = "decode-failed"
