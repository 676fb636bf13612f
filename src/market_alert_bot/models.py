from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from dateutil import parser as _dtparse

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"

SENTIMENT_MARKERS: Dict[str, str] = {
    POSITIVE: "\U0001f7e2",  # green circle
    NEGATIVE: "\U0001f534",  # red circle
    NEUTRAL: "⚪",  # white circle
}


def to_utc(value: Any) -> Optional[datetime]:
    """Coerce a datetime, ISO/RFC 822 string or ``time.struct_time`` to aware UTC.

    Returns None for missing or unparseable values so callers can decide on
    a fallback.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = _dtparse.parse(value)
        except (ValueError, OverflowError):
            return None
    else:
        # feedparser *_parsed fields are UTC struct_time tuples
        try:
            dt = datetime(*tuple(value)[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class NewsEntry:
    """
    One article pulled from a feed.  Immutable once fetched.

    ``id`` is the feed-provided guid when present; ``key`` falls back to the
    link so entries without a guid still have a stable identity.  The
    published timestamp is optional; formatting substitutes the processing
    time when it is missing.
    """

    id: str
    title: str
    link: str
    summary: Optional[str] = None
    author: Optional[str] = None
    published: Optional[datetime] = None

    @property
    def key(self) -> str:
        return self.id or self.link

    @property
    def source_host(self) -> Optional[str]:
        try:
            host = urlparse(self.link).hostname
        except ValueError:
            return None
        return host.lower() if host else None

    @property
    def text(self) -> str:
        """Lowercased title + snippet used by the classifier."""
        return f"{self.title} {self.summary or ''}".lower()

    @classmethod
    def from_feed_dict(cls, d: Dict[str, Any]) -> "NewsEntry":
        """
        Build a NewsEntry from a dict (or feedparser entry).  Recognizes
        ``id``/``guid`` for identity, ``summary``/``description``/
        ``contentSnippet`` for the snippet, ``author``/``creator`` for the
        byline and ``published``/``isoDate``/``updated`` for the timestamp.
        """
        published = (
            to_utc(d.get("published_parsed"))
            or to_utc(d.get("updated_parsed"))
            or to_utc(d.get("published"))
            or to_utc(d.get("isoDate"))
            or to_utc(d.get("updated"))
        )
        return cls(
            id=str(d.get("id") or d.get("guid") or "").strip(),
            title=str(d.get("title") or "").strip(),
            link=str(d.get("link") or "").strip(),
            summary=(
                d.get("summary") or d.get("description") or d.get("contentSnippet")
            ),
            author=(d.get("author") or d.get("creator") or None),
            published=published,
        )


@dataclass(frozen=True)
class SentimentResult:
    score: int
    label: str
    positive_hits: int = 0
    negative_hits: int = 0

    @property
    def marker(self) -> str:
        return SENTIMENT_MARKERS.get(self.label, SENTIMENT_MARKERS[NEUTRAL])

    @classmethod
    def from_counts(cls, positive: int, negative: int) -> "SentimentResult":
        score = positive - negative
        if score > 0:
            label = POSITIVE
        elif score < 0:
            label = NEGATIVE
        else:
            label = NEUTRAL
        return cls(
            score=score, label=label, positive_hits=positive, negative_hits=negative
        )


@dataclass(frozen=True)
class AlertMessage:
    """Channel-ready alert body (Telegram HTML parse mode)."""

    text: str
    parse_mode: str = "HTML"
    disable_web_page_preview: bool = False
