# src/market_alert_bot/alerts.py
from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .logging_utils import get_logger
from .models import AlertMessage, NewsEntry, SentimentResult
from .telegram_transport import DeliveryError, RateLimited
from .time_utils import now as _now
from .time_utils import sleep_interruptible

log = get_logger("alerts")

# Telegram caps messages at 4096 chars; titles are the only unbounded field
MAX_TITLE_CHARS = 1000

SENT = "sent"
FAILED = "failed"
RATE_LIMITED = "rate_limited"
INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class DeliveryOutcome:
    status: str
    attempts: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SENT


def _source_of(entry: NewsEntry) -> str:
    return entry.author or entry.source_host or "unknown"


def _fmt_ts(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_message(
    entry: NewsEntry,
    sentiment: SentimentResult,
    now: Optional[datetime] = None,
    disable_web_page_preview: bool = False,
) -> AlertMessage:
    """Compose the channel alert body for one entry."""
    published = entry.published or now or _now()
    raw_title = entry.title.strip()
    if len(raw_title) > MAX_TITLE_CHARS:
        raw_title = raw_title[: MAX_TITLE_CHARS - 3] + "..."
    title = html.escape(raw_title, quote=False)
    source = html.escape(_source_of(entry), quote=False)
    link = html.escape(entry.link or "", quote=True)

    lines = [
        f"{sentiment.marker} <b>{title}</b>",
        "",
        f"Source: {source}",
        f"Published: {_fmt_ts(published)}",
        f"Sentiment: {sentiment.label.capitalize()}",
    ]
    if link:
        lines += ["", f'<a href="{link}">Read more</a>']
    return AlertMessage(
        text="\n".join(lines), disable_web_page_preview=disable_web_page_preview
    )


def dispatch(
    transport,
    chat_id: str,
    message: AlertMessage,
    *,
    max_attempts: int = 3,
    default_wait: float = 30.0,
    stop_flag_getter: Optional[Callable[[], bool]] = None,
    sleep: Callable[..., bool] = sleep_interruptible,
) -> DeliveryOutcome:
    """
    Send ``message`` with a bounded retry on rate limits.

    - RateLimited: wait ``retry_after`` (or ``default_wait``) and retry, up
      to ``max_attempts`` attempts in total.
    - DeliveryError: no retry.
    Never raises transport errors.
    """
    attempts = 0
    last_error: Optional[str] = None
    while attempts < max_attempts:
        attempts += 1
        try:
            transport.send_message(chat_id, message)
            log.info("alert_sent chat=%s attempts=%d", chat_id, attempts)
            return DeliveryOutcome(SENT, attempts)
        except RateLimited as e:
            last_error = str(e)
            if attempts >= max_attempts:
                break
            wait = e.retry_after if e.retry_after is not None else default_wait
            wait = max(0.0, float(wait))
            log.warning(
                "alert_rate_limited attempt=%d wait=%.1fs err=%s",
                attempts,
                wait,
                last_error,
            )
            if not sleep(wait, stop_flag_getter):
                log.warning("alert_abandoned reason=shutdown attempts=%d", attempts)
                return DeliveryOutcome(INTERRUPTED, attempts, last_error)
        except DeliveryError as e:
            log.error(
                "alert_error http_status=%s err=%s", e.status_code, str(e)
            )
            return DeliveryOutcome(FAILED, attempts, str(e))

    log.error(
        "alert_abandoned reason=retries_exhausted attempts=%d err=%s",
        attempts,
        last_error,
    )
    return DeliveryOutcome(RATE_LIMITED, attempts, last_error)
