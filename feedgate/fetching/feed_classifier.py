"""Cheap "does this look like a feed" heuristics.

This is substring matching, not XML parsing: a broken document that
mentions `<rss` still counts as a feed.
"""

from __future__ import annotations

from dataclasses import dataclass

from feedgate.fetching.bounded_fetch import FetchResult, header_value


CONTENT_TYPE_MARKERS = ("xml", "rss", "atom")
MARKUP_MARKERS = ("<rss", "<feed", "<?xml", "<channel", "<atom")
PREVIEW_BYTES = 1000

SIGNAL_CONTENT_TYPE = "content-type"
SIGNAL_MARKUP = "markup-heuristic"
SIGNAL_NONE = "none"

VALID_MESSAGE = "✅ Feed looks valid! Ready to save."
NOT_A_FEED_MESSAGE = "⚠️ URL accessible but doesn't appear to be an RSS feed"


@dataclass(frozen=True)
class ClassificationVerdict:
    looks_like_feed: bool
    matched_signal: str


def classify(result: FetchResult) -> ClassificationVerdict:
    content_type = header_value(result.headers, "content-type").lower()
    if any(marker in content_type for marker in CONTENT_TYPE_MARKERS):
        return ClassificationVerdict(True, SIGNAL_CONTENT_TYPE)

    preview = result.body[:PREVIEW_BYTES].decode("utf-8", errors="replace").lower()
    if any(marker in preview for marker in MARKUP_MARKERS):
        return ClassificationVerdict(True, SIGNAL_MARKUP)

    return ClassificationVerdict(False, SIGNAL_NONE)


def result_message(verdict: ClassificationVerdict, status_code: int) -> str:
    if verdict.looks_like_feed:
        return VALID_MESSAGE
    if status_code == 200:
        return NOT_A_FEED_MESSAGE
    return f"⚠️ HTTP {status_code} - Server responded but may not be a valid feed"
