"""Feed URL check: parse, admit, fetch, classify."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from feedgate.config import FeedCheckConfig
from feedgate.errors import FetchError
from feedgate.fetching import bounded_fetch as bf
from feedgate.fetching.admission import admit_url
from feedgate.fetching.feed_classifier import classify, result_message


_TRANSPORT_MESSAGES = {
    bf.DNS_FAILURE: "Domain not found - please check the URL",
    bf.CONNECTION_REFUSED: "Connection refused - server may be down",
    bf.TIMEOUT: "Request timeout - server took too long to respond",
}


@dataclass(frozen=True)
class FeedCheckOutcome:
    url: str
    valid: bool
    status: int
    message: str
    content_type: str
    matched_signal: str
    truncated: bool


def transport_error_message(err: FetchError) -> str:
    known = _TRANSPORT_MESSAGES.get(err.kind)
    if known:
        return known
    if err.message:
        return f"Error testing feed: {err.message}"
    return "Error testing feed"


def check_feed(raw_url: str, config: Optional[FeedCheckConfig] = None) -> FeedCheckOutcome:
    """Run one feed check.

    Raises InputError for anything refused before (or during, on redirect)
    the fetch, and FetchError when the transport fails.
    """
    cfg = config or FeedCheckConfig()
    candidate = admit_url(raw_url)
    result = bf.bounded_fetch(
        candidate,
        timeout=cfg.timeout,
        connect_timeout=cfg.connect_timeout,
        max_bytes=cfg.max_bytes,
        max_redirects=cfg.max_redirects,
    )
    verdict = classify(result)
    return FeedCheckOutcome(
        url=raw_url,
        valid=verdict.looks_like_feed,
        status=result.status_code,
        message=result_message(verdict, result.status_code),
        content_type=result.content_type,
        matched_signal=verdict.matched_signal,
        truncated=result.truncated,
    )
