# src/market_alert_bot/feeds.py
from __future__ import annotations

import html
import re
from typing import Any, List, Optional

import feedparser  # type: ignore
import requests
from bs4 import BeautifulSoup

from .logging_utils import get_logger
from .models import NewsEntry

log = get_logger("feeds")

DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "MarketAlertBot/1.0 (+rss)"

_SESSION = requests.Session()


class FetchError(Exception):
    """Raised when a feed cannot be downloaded or parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


def clean_html_content(text: Optional[str]) -> str:
    """
    Decode entities, strip tags and collapse whitespace.

    >>> clean_html_content("<p>Breaking: <b>TSLA</b> surges 10%</p>")
    'Breaking: TSLA surges 10%'
    >>> clean_html_content(None)
    ''
    """
    if not text:
        return ""
    decoded = html.unescape(text)
    if "<" in decoded:
        decoded = BeautifulSoup(decoded, "html.parser").get_text(separator=" ")
    return re.sub(r"\s+", " ", decoded).strip()


def _normalize_entry(e: Any) -> Optional[NewsEntry]:
    entry = NewsEntry.from_feed_dict(e)
    title = clean_html_content(entry.title)
    if not title or not entry.key:
        return None
    summary = clean_html_content(entry.summary) or None
    author = clean_html_content(entry.author) or None
    return NewsEntry(
        id=entry.id,
        title=title,
        link=entry.link,
        summary=summary,
        author=author,
        published=entry.published,
    )


def parse_feed(text: str, url: str = "") -> List[NewsEntry]:
    """Parse feed XML into entries, in feed order."""
    parsed = feedparser.parse(text)
    raw_entries = list(getattr(parsed, "entries", None) or [])
    if getattr(parsed, "bozo", False) and not raw_entries:
        exc = getattr(parsed, "bozo_exception", None)
        raise FetchError(url, f"malformed feed: {exc}")

    entries: List[NewsEntry] = []
    dropped = 0
    for e in raw_entries:
        norm = _normalize_entry(e)
        if norm is None:
            dropped += 1
            continue
        entries.append(norm)
    if dropped:
        log.debug("feed_entries_dropped url=%s count=%d", url, dropped)
    return entries


def fetch_feed(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    session: Optional[requests.Session] = None,
) -> List[NewsEntry]:
    """Download and parse one feed.

    Raises
    ------
    FetchError
        On network errors, non-2xx responses, or unparseable content.
    """
    try:
        resp = (session or _SESSION).get(
            url,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/rss+xml, application/atom+xml, "
                "application/xml;q=0.9, */*;q=0.8",
            },
        )
    except requests.RequestException as e:
        raise FetchError(url, f"{e.__class__.__name__}: {e}") from e

    status = getattr(resp, "status_code", None)
    if status is None or not (200 <= status < 300):
        raise FetchError(url, f"http_status={status}")

    entries = parse_feed(resp.text, url)
    log.info("feed_fetched url=%s entries=%d", url, len(entries))
    return entries
