import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple


def _b(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {
        "1",
        "true",
        "yes",
        "y",
        "on",
    }


def _int(name: str, default: int) -> int:
    try:
        return int((os.getenv(name) or str(default)).strip())
    except Exception:
        return default


def _float(name: str, default: float) -> float:
    try:
        return float((os.getenv(name) or str(default)).strip())
    except Exception:
        return default


def _env_first(*names: str) -> str:
    for n in names:
        v = os.getenv(n)
        if v and v.strip():
            return v.strip()
    return ""


def _list(name: str, default: Tuple[str, ...]) -> List[str]:
    """Comma/newline separated list from env; falls back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    parts = [p.strip() for p in raw.replace("\n", ",").split(",")]
    return [p for p in parts if p]


# ---------------------------------------------------------------------------
# Feed sources
# ---------------------------------------------------------------------------

DEFAULT_FEEDS: Tuple[str, ...] = (
    "https://finance.yahoo.com/news/rssindex",
    "https://www.marketwatch.com/rss/topstories",
    "https://www.cnbc.com/id/100003114/device/rss/rss.html",
    "https://economictimes.indiatimes.com/markets/rssfeeds/1977021501.cms",
    "https://www.moneycontrol.com/rss/market.xml",
    "https://www.business-standard.com/rss/markets-106.rss",
)

# ---------------------------------------------------------------------------
# Keyword lists (static data; matchers are compiled once in classify.py)
# ---------------------------------------------------------------------------

# Phrases that suggest market-moving news.  Matched as raw substrings.
MARKET_KEYWORDS: Tuple[str, ...] = (
    # macro / central banks
    "fed", "federal reserve", "interest rate", "rates", "inflation", "cpi",
    "gdp", "unemployment",
    # india
    "nifty", "sensex", "bse", "nse", "rbi", "sebi", "rupee", "rbi governor",
    # corporate results
    "earnings", "revenue", "profit", "loss", "forecast", "guidance", "outlook",
    # market regime
    "crash", "correction", "bear market", "bull market", "recession",
    "depression",
    # moves
    "rally", "surge", "plunge", "tumble", "soar", "slump",
    # indices / venues
    "stock market", "wall street", "dow jones", "nasdaq", "s&p", "russell",
    # credit
    "treasury", "bond", "yield", "debt", "default",
    # corporate actions
    "ipo", "merger", "acquisition", "bankrupt", "chapter 11",
    # policy
    "economic", "economy", "fiscal", "monetary policy",
    "stimulus", "bailout", "regulation", "deregulation",
    "trade war", "tariff", "sanction", "embargo",
)

# Whole-word sentiment terms.
POSITIVE_KEYWORDS: Tuple[str, ...] = (
    "rise", "rises", "rising", "rose", "gain", "gains", "gained", "up", "higher",
    "surge", "surges", "surged", "rally", "rallies", "rallied",
    "recover", "recovers", "recovered",
    "beat", "beats", "beating", "exceed", "exceeds", "exceeded",
    "outperform", "outperforms",
    "strong", "stronger", "strongest", "positive", "optimistic", "optimism",
    "confidence",
    "bullish", "boom", "soar", "soars", "soared", "jump", "jumps", "jumped",
    "growth", "expand", "expands", "expanded", "breakthrough", "success",
)

NEGATIVE_KEYWORDS: Tuple[str, ...] = (
    "fall", "falls", "falling", "fell", "drop", "drops", "dropped", "down",
    "lower",
    "plunge", "plunges", "plunged", "tumble", "tumbles", "tumbled",
    "sink", "sinks", "sank",
    "miss", "misses", "missed", "fail", "fails", "failed",
    "underperform", "underperforms",
    "weak", "weaker", "weakest", "negative", "pessimistic", "pessimism",
    "concern", "concerned",
    "bearish", "bust", "crash", "crashes", "crashed",
    "collapse", "collapses", "collapsed",
    "decline", "declines", "declined", "shrink", "shrinks", "shrank",
    "crisis", "warning",
)


@dataclass
class Settings:
    # Telegram credentials / destination
    telegram_token: str = field(
        default_factory=lambda: _env_first("TELEGRAM_TOKEN", "BOT_TOKEN")
    )
    channel_id: str = field(
        default_factory=lambda: _env_first("CHANNEL_ID", "CHANNEL_USERNAME")
    )
    telegram_api_base: str = field(
        default_factory=lambda: os.getenv(
            "TELEGRAM_API_BASE", "https://api.telegram.org"
        ).rstrip("/")
    )
    disable_link_preview: bool = field(
        default_factory=lambda: _b("DISABLE_LINK_PREVIEW", False)
    )

    # Feeds
    feed_urls: List[str] = field(
        default_factory=lambda: _list("RSS_FEEDS", DEFAULT_FEEDS)
    )
    feed_timeout_seconds: float = field(
        default_factory=lambda: _float("FEED_TIMEOUT_SECONDS", 15.0)
    )
    feed_user_agent: str = field(
        default_factory=lambda: os.getenv(
            "FEED_USER_AGENT", "MarketAlertBot/1.0 (+rss)"
        )
    )

    # Loop timing
    poll_interval_seconds: float = field(
        default_factory=lambda: _float("CHECK_INTERVAL_SECONDS", 180.0)
    )
    message_delay_seconds: float = field(
        default_factory=lambda: _float("MESSAGE_DELAY_SECONDS", 2.0)
    )

    # Delivery retry policy
    send_max_attempts: int = field(
        default_factory=lambda: max(1, _int("SEND_MAX_ATTEMPTS", 3))
    )
    rate_limit_default_wait: float = field(
        default_factory=lambda: _float("RATE_LIMIT_DEFAULT_WAIT", 30.0)
    )
    send_timeout_seconds: float = field(
        default_factory=lambda: _float("SEND_TIMEOUT_SECONDS", 10.0)
    )

    # Cache store
    cache_file: Path = field(
        default_factory=lambda: Path(os.getenv("CACHE_FILE", ".article_cache.json"))
    )
    max_cache_size: int = field(
        default_factory=lambda: max(2, _int("MAX_CACHE_SIZE", 1000))
    )
    title_window_seconds: float = field(
        default_factory=lambda: _float("TITLE_WINDOW_SECONDS", 3600.0)
    )

    # Liveness endpoint
    feature_health_endpoint: bool = field(
        default_factory=lambda: _b("FEATURE_HEALTH_ENDPOINT", True)
    )
    health_port: int = field(
        default_factory=lambda: _int("PORT", _int("HEALTH_CHECK_PORT", 3000))
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_plain: bool = field(default_factory=lambda: _b("LOG_PLAIN", False))
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", "data")).resolve()
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.telegram_token and self.channel_id)

    def masked_token(self) -> Optional[str]:
        tok = self.telegram_token
        if not tok:
            return None
        return f"{tok[:4]}...{tok[-2:]}" if len(tok) > 8 else "***"


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
