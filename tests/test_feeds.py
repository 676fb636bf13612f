from datetime import datetime, timezone

import pytest
import requests

from market_alert_bot.feeds import FetchError, clean_html_content, fetch_feed, parse_feed

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Markets</title>
    <link>https://news.example.com/</link>
    <description>Market news</description>
    <item>
      <title>Sensex surges 500 points</title>
      <link>https://news.example.com/a/1</link>
      <guid isPermaLink="false">guid-1</guid>
      <description>&lt;p&gt;Shares &lt;b&gt;surge&lt;/b&gt; after   earnings&lt;/p&gt;</description>
      <dc:creator>Jane Doe</dc:creator>
      <pubDate>Tue, 05 Mar 2024 14:30:00 GMT</pubDate>
    </item>
    <item>
      <title>Rupee slides against dollar</title>
      <link>https://news.example.com/a/2</link>
    </item>
    <item>
      <link>https://news.example.com/a/3</link>
      <description>No title here</description>
    </item>
  </channel>
</rss>
"""


class _Resp:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


class _Session:
    def __init__(self, resp=None, exc=None):
        self.resp = resp
        self.exc = exc
        self.calls = []

    def get(self, url, timeout=None, headers=None):
        self.calls.append({"url": url, "timeout": timeout, "headers": headers})
        if self.exc is not None:
            raise self.exc
        return self.resp


def test_parse_feed_normalizes_entries() -> None:
    entries = parse_feed(RSS, "https://news.example.com/rss")
    # the untitled item is dropped
    assert len(entries) == 2

    first, second = entries
    assert first.id == "guid-1"
    assert first.key == "guid-1"
    assert first.title == "Sensex surges 500 points"
    assert first.summary == "Shares surge after earnings"
    assert first.author == "Jane Doe"
    assert first.published == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)

    assert second.key == "https://news.example.com/a/2"
    assert second.published is None


def test_parse_feed_rejects_garbage() -> None:
    with pytest.raises(FetchError):
        parse_feed("this is not a feed at all", "https://bad.example.com/rss")


def test_clean_html_content() -> None:
    assert clean_html_content("<p>Breaking: <b>TSLA</b> surges 10%</p>") == (
        "Breaking: TSLA surges 10%"
    )
    assert clean_html_content("AT&amp;T   beats\n estimates") == "AT&T beats estimates"
    assert clean_html_content(None) == ""


def test_fetch_feed_success() -> None:
    session = _Session(_Resp(200, RSS))
    entries = fetch_feed(
        "https://news.example.com/rss", timeout=3.0, user_agent="UA/1", session=session
    )
    assert [e.key for e in entries] == ["guid-1", "https://news.example.com/a/2"]
    call = session.calls[0]
    assert call["timeout"] == 3.0
    assert call["headers"]["User-Agent"] == "UA/1"


def test_fetch_feed_http_error() -> None:
    session = _Session(_Resp(503, "unavailable"))
    with pytest.raises(FetchError, match="http_status=503"):
        fetch_feed("https://news.example.com/rss", session=session)


def test_fetch_feed_network_error() -> None:
    session = _Session(exc=requests.Timeout("read timed out"))
    with pytest.raises(FetchError) as exc:
        fetch_feed("https://news.example.com/rss", session=session)
    assert exc.value.url == "https://news.example.com/rss"
    assert "Timeout" in exc.value.reason
