"""Relevance and sentiment classification of news entries.

Both checks work on the lowercased title + snippet of a
:class:`~market_alert_bot.models.NewsEntry` and are pure functions of that
text and the static keyword lists in :mod:`market_alert_bot.config`.

Relevance uses raw substring containment, so a short keyword such as
"fed" also fires inside "federal" or "fedex".  Sentiment counts whole
words only, so "up" never matches inside "update".
"""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern, Tuple

from .config import MARKET_KEYWORDS, NEGATIVE_KEYWORDS, POSITIVE_KEYWORDS
from .logging_utils import get_logger
from .models import NewsEntry, SentimentResult

log = get_logger("classify")


class KeywordMatcher:
    """Precompiled whole-word patterns for a keyword list.

    Each keyword keeps its own pattern so a term is counted independently
    of every other term (``surge`` and ``surges`` never share a match).
    """

    def __init__(self, keywords: Iterable[str]):
        self.keywords: Tuple[str, ...] = tuple(k.lower() for k in keywords)
        self._patterns: List[Tuple[str, Pattern[str]]] = [
            (k, re.compile(r"\b" + re.escape(k) + r"\b")) for k in self.keywords
        ]

    def count(self, text: str) -> int:
        """Total non-overlapping whole-word occurrences across all keywords."""
        return sum(len(p.findall(text)) for _, p in self._patterns)


_POSITIVE = KeywordMatcher(POSITIVE_KEYWORDS)
_NEGATIVE = KeywordMatcher(NEGATIVE_KEYWORDS)
_MARKET: Tuple[str, ...] = tuple(k.lower() for k in MARKET_KEYWORDS)


def market_hits(entry: NewsEntry) -> List[str]:
    """Market keywords found as substrings of the entry text."""
    text = entry.text
    return [k for k in _MARKET if k in text]


def is_relevant(entry: NewsEntry) -> bool:
    text = entry.text
    return any(k in text for k in _MARKET)


def score_sentiment(entry: NewsEntry) -> SentimentResult:
    text = entry.text
    result = SentimentResult.from_counts(_POSITIVE.count(text), _NEGATIVE.count(text))
    log.debug(
        "sentiment_scored label=%s score=%d pos=%d neg=%d title=%s",
        result.label,
        result.score,
        result.positive_hits,
        result.negative_hits,
        entry.title[:80],
    )
    return result
