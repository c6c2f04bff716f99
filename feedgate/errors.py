"""Exception types shared by the feed check and dispatch paths.

Every error raised here is caught at the request boundary in `web_app.py`
and turned into a JSON error envelope.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class FeedgateError(Exception):
    """Base class for errors with a client-facing message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(FeedgateError):
    """The caller sent something we refuse to act on (HTTP 400)."""


class ConfigurationError(FeedgateError):
    def __init__(self, message: str, missing: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class FetchError(FeedgateError):
    """Outbound fetch failed at the transport level.

    `kind` is one of the constants in `feedgate.fetching.bounded_fetch`
    (dns_failure, connection_refused, timeout, ...).
    """

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class UpstreamAPIError(FeedgateError):
    """The automation API answered with something other than success."""

    def __init__(self, status_code: int, message: str, raw_body: str = "", details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.raw_body = raw_body
        self.details = details
