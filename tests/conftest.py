from pathlib import Path

import pytest

from market_alert_bot import runner
from market_alert_bot.models import NewsEntry

_BOT_ENV = (
    "TELEGRAM_TOKEN",
    "BOT_TOKEN",
    "CHANNEL_ID",
    "CHANNEL_USERNAME",
    "TELEGRAM_API_BASE",
    "DISABLE_LINK_PREVIEW",
    "RSS_FEEDS",
    "FEED_TIMEOUT_SECONDS",
    "FEED_USER_AGENT",
    "CHECK_INTERVAL_SECONDS",
    "MESSAGE_DELAY_SECONDS",
    "SEND_MAX_ATTEMPTS",
    "RATE_LIMIT_DEFAULT_WAIT",
    "SEND_TIMEOUT_SECONDS",
    "MAX_CACHE_SIZE",
    "TITLE_WINDOW_SECONDS",
    "PORT",
    "HEALTH_CHECK_PORT",
    "LOG_LEVEL",
    "LOG_PLAIN",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    """Start every test from a clean bot environment rooted in tmp_path."""
    for name in _BOT_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CACHE_FILE", str(tmp_path / "cache.json"))
    monkeypatch.setenv("FEATURE_HEALTH_ENDPOINT", "false")
    runner.STOP = False
    yield
    runner.STOP = False


class FakeTransport:
    """Records sends; ``outcomes`` lists an exception (or None) per call."""

    def __init__(self, outcomes=None, verify_error=None):
        self.outcomes = list(outcomes or [])
        self.verify_error = verify_error
        self.sent = []
        self.verified = 0

    def verify(self):
        self.verified += 1
        if self.verify_error is not None:
            raise self.verify_error
        return {"username": "market_alert_test_bot"}

    def send_message(self, chat_id, message):
        self.sent.append((chat_id, message))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if outcome is not None:
                raise outcome
        return {"message_id": len(self.sent)}


class FakeSleep:
    """Stand-in for ``sleep_interruptible`` that never blocks."""

    def __init__(self, results=None):
        self.calls = []
        self.results = list(results or [])

    def __call__(self, seconds, stop_flag_getter=None):
        self.calls.append(seconds)
        if self.results:
            return self.results.pop(0)
        return True


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def fake_sleep():
    return FakeSleep


@pytest.fixture
def make_entry():
    def _make(
        id="guid-1",
        title="Fed signals interest rate cut",
        link="https://news.example.com/a/1",
        summary=None,
        author=None,
        published=None,
    ):
        return NewsEntry(
            id=id,
            title=title,
            link=link,
            summary=summary,
            author=author,
            published=published,
        )

    return _make
