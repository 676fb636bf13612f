# -*- coding: utf-8 -*-
"""Market alert bot runner.

Polls the configured feeds on a fixed interval, filters and scores each new
entry, and posts alerts to the Telegram channel.  One thread runs the loop;
SIGINT/SIGTERM flip ``STOP``, which every wait in the loop checks, and the
seen-id snapshot is written on the way out.
"""

from __future__ import annotations

# stdlib
import argparse
import os
import signal
import sys
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional

# Load .env early so config is available to subsequent imports.
from dotenv import load_dotenv

# If DOTENV_FILE is set, load that; otherwise default to .env
env_file = os.getenv("DOTENV_FILE")
if env_file:
    load_dotenv(env_file)
else:
    load_dotenv()

from .alerts import INTERRUPTED, dispatch, format_message
from .classify import is_relevant, market_hits, score_sentiment
from .config import Settings, get_settings
from .feeds import FetchError, fetch_feed
from .health_endpoint import start_health_server, update_health_status
from .logging_utils import get_logger, setup_logging
from .models import NewsEntry
from .seen_store import SeenStore, SeenStoreConfig
from .telegram_transport import CredentialError, TelegramTransport
from .time_utils import monotonic, now, sleep_interruptible

log = get_logger("runner")

STOP = False

TOTAL_STATS = {"cycles": 0, "alerts": 0}

FeedFetcher = Callable[[str], List[NewsEntry]]


@dataclass
class CycleStats:
    feeds_ok: int = 0
    feeds_failed: int = 0
    entries: int = 0
    duplicates: int = 0
    irrelevant: int = 0
    entries_failed: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    interrupted: bool = False


def _sig_handler(signum, frame):
    """Graceful shutdown handler for SIGINT/SIGTERM signals."""
    global STOP
    sig_name = (
        signal.Signals(signum).name
        if hasattr(signal, "Signals")
        else f"signal_{signum}"
    )
    STOP = True
    log.warning("shutdown_signal_received signal=%s", sig_name)


def _should_stop() -> bool:
    return STOP


def _install_signal_handlers() -> dict:
    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _sig_handler)
        except (ValueError, OSError) as e:
            # not the main thread, or the platform lacks the signal
            log.debug("signal_handler_skipped signal=%s err=%s", sig, e)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        try:
            signal.signal(sig, handler)
        except (ValueError, OSError, TypeError) as e:
            log.debug("signal_handler_restore_failed signal=%s err=%s", sig, e)


def _default_fetcher(settings: Settings) -> FeedFetcher:
    def _fetch(url: str) -> List[NewsEntry]:
        return fetch_feed(
            url,
            timeout=settings.feed_timeout_seconds,
            user_agent=settings.feed_user_agent,
        )

    return _fetch


def run_cycle(
    store: SeenStore,
    transport,
    settings: Settings,
    fetcher: Optional[FeedFetcher] = None,
    stop_flag_getter: Callable[[], bool] = _should_stop,
    sleep: Callable[..., bool] = sleep_interruptible,
) -> CycleStats:
    """Run one pass over every configured feed.

    Entries are handled in feed order.  An entry is recorded in ``store``
    exactly once after its dispatch attempt finishes, whether or not the
    message was delivered; an attempt cut short by shutdown is not recorded.
    """
    fetcher = fetcher or _default_fetcher(settings)
    stats = CycleStats()
    dispatched_any = False

    log.info("cycle_start feeds=%d at=%s", len(settings.feed_urls), now().isoformat())
    for feed_url in settings.feed_urls:
        if stop_flag_getter():
            stats.interrupted = True
            break
        try:
            entries = fetcher(feed_url)
        except FetchError as e:
            stats.feeds_failed += 1
            log.warning("feed_fetch_failed url=%s err=%s", feed_url, e.reason)
            continue
        except Exception as e:
            stats.feeds_failed += 1
            log.error(
                "feed_processing_error url=%s err=%s", feed_url, str(e), exc_info=True
            )
            continue
        stats.feeds_ok += 1

        for entry in entries:
            if stop_flag_getter():
                stats.interrupted = True
                break
            stats.entries += 1
            key = entry.key
            if not key:
                log.debug("entry_skipped reason=no_key title=%s", entry.title[:80])
                continue
            # a failing entry is logged and skipped; the feed loop carries on
            try:
                if store.has(key) or store.is_similar_title(entry.title):
                    stats.duplicates += 1
                    continue
                if not is_relevant(entry):
                    stats.irrelevant += 1
                    continue

                log.info(
                    "relevant_entry title=%s keywords=%s",
                    entry.title[:120],
                    ",".join(market_hits(entry)[:5]),
                )
                sentiment = score_sentiment(entry)
                message = format_message(
                    entry,
                    sentiment,
                    disable_web_page_preview=settings.disable_link_preview,
                )

                if dispatched_any and not sleep(
                    settings.message_delay_seconds, stop_flag_getter
                ):
                    stats.interrupted = True
                    break
                dispatched_any = True
                outcome = dispatch(
                    transport,
                    settings.channel_id,
                    message,
                    max_attempts=settings.send_max_attempts,
                    default_wait=settings.rate_limit_default_wait,
                    stop_flag_getter=stop_flag_getter,
                    sleep=sleep,
                )
                if outcome.status == INTERRUPTED:
                    stats.interrupted = True
                    break

                store.record(key, entry.title)
                if outcome.ok:
                    stats.alerts_sent += 1
                else:
                    stats.alerts_failed += 1
            except Exception as e:
                stats.entries_failed += 1
                log.error(
                    "entry_processing_error url=%s key=%s err=%s",
                    feed_url,
                    key,
                    str(e),
                    exc_info=True,
                )

        if stats.interrupted:
            break

    log.info("cycle_done %s", " ".join(f"{k}={v}" for k, v in asdict(stats).items()))
    return stats


def runner_main(
    once: bool = False,
    loop: bool = False,
    sleep_s: float | None = None,
    *,
    transport=None,
    fetcher: Optional[FeedFetcher] = None,
) -> int:
    global STOP
    STOP = False

    settings = get_settings()
    setup_logging(settings.log_level, settings)

    log.info(
        "boot_start feeds=%d channel=%s token=%s interval=%ss",
        len(settings.feed_urls),
        settings.channel_id or "missing",
        settings.masked_token() or "missing",
        settings.poll_interval_seconds,
    )

    # Credential check is the only fatal failure.
    try:
        if not settings.has_credentials:
            raise CredentialError("TELEGRAM_TOKEN and CHANNEL_ID must both be set")
        if transport is None:
            transport = TelegramTransport(
                settings.telegram_token,
                base_url=settings.telegram_api_base,
                timeout=settings.send_timeout_seconds,
            )
        me = transport.verify()
    except CredentialError as e:
        log.error("boot_credentials_invalid err=%s", str(e))
        return 1
    log.info("bot_connected username=%s", (me or {}).get("username"))

    store = SeenStore(
        SeenStoreConfig(
            capacity=settings.max_cache_size,
            title_window_seconds=settings.title_window_seconds,
        )
    )
    store.load_snapshot(settings.cache_file)

    previous_handlers = _install_signal_handlers()

    server = None
    if settings.feature_health_endpoint:
        try:
            server = start_health_server(port=settings.health_port)
        except OSError as e:
            log.warning("health_endpoint_failed port=%d err=%s", settings.health_port, e)

    do_loop = loop or not once
    interval = settings.poll_interval_seconds if sleep_s is None else sleep_s
    log.info(
        "monitoring_started feeds=%d interval=%ss loop=%s",
        len(settings.feed_urls),
        interval,
        do_loop,
    )

    try:
        while True:
            t0 = monotonic()
            try:
                stats = run_cycle(store, transport, settings, fetcher=fetcher)
                TOTAL_STATS["cycles"] += 1
                TOTAL_STATS["alerts"] += stats.alerts_sent
                update_health_status(
                    status="healthy",
                    last_cycle_time=now(),
                    total_cycles=TOTAL_STATS["cycles"],
                    total_alerts=TOTAL_STATS["alerts"],
                )
            except Exception as e:
                log.error("cycle_failed err=%s", str(e), exc_info=True)
                update_health_status(error=f"cycle_failed: {e}")

            if not do_loop or STOP:
                break
            # ticks never overlap: sleep only what is left of the interval
            remaining = interval - (monotonic() - t0)
            if not sleep_interruptible(remaining, _should_stop):
                break
    except KeyboardInterrupt:
        log.warning("shutdown_keyboard_interrupt")
    finally:
        update_health_status(status="stopping")
        log.info("shutdown_saving_cache stats=%s", store.stats())
        store.save_snapshot(settings.cache_file)
        if server is not None:
            server.shutdown()
            server.server_close()
        _restore_signal_handlers(previous_handlers)

    log.info("boot_end")
    return 0


def main(
    *,
    once: bool = False,
    loop: bool = False,
    sleep: float | None = None,
    argv: List[str] | None = None,
) -> int:
    """
    Entry point for the market alert bot.

    Keyword flags bypass argument parsing so tests can call
    ``main(once=True)``; otherwise ``argv`` (or ``sys.argv``) is parsed.
    """
    if once or loop or sleep is not None:
        return runner_main(once=once, loop=loop, sleep_s=sleep)
    ap = argparse.ArgumentParser(prog="market-alert-bot")
    ap.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    ap.add_argument("--loop", action="store_true", help="Run continuously (default)")
    ap.add_argument(
        "--sleep",
        type=float,
        default=None,
        help="Seconds between cycles when looping (default: CHECK_INTERVAL_SECONDS)",
    )
    args = ap.parse_args(argv)
    return runner_main(once=args.once, loop=args.loop, sleep_s=args.sleep)


if __name__ == "__main__":
    sys.exit(main())
