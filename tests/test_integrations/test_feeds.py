"""Tests for feed parsing and the feed client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from autodirector.core.exceptions import FetchError
from autodirector.integrations.feeds import FeedClient, FeedItem, news_search_url, parse_feed

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Acme</title>
<item>
  <title>Acme launches widget</title>
  <link>https://acme.example/widget</link>
  <pubDate>Mon, 05 Oct 2026 09:00:00 GMT</pubDate>
  <description>&lt;p&gt;The &lt;b&gt;new&lt;/b&gt; widget&lt;/p&gt;</description>
</item>
<item>
  <title>Acme hiring Python engineers</title>
  <link>https://acme.example/jobs</link>
</item>
</channel></rss>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Rival</title>
  <entry>
    <title>Rival raises funding</title>
    <link href="https://rival.example/funding"/>
    <updated>2026-10-01T12:00:00Z</updated>
    <summary>Series B closes.</summary>
  </entry>
</feed>
"""


class TestParseFeed:
    """RSS and Atom parsing."""

    def test_rss_items(self):
        items = parse_feed(RSS, source="https://acme.example/rss")
        assert [i.title for i in items] == ["Acme launches widget", "Acme hiring Python engineers"]
        assert items[0].link == "https://acme.example/widget"
        assert items[0].published == "Mon, 05 Oct 2026 09:00:00 GMT"
        assert items[0].summary == "The new widget"
        assert items[0].source == "https://acme.example/rss"

    def test_atom_entries(self):
        [item] = parse_feed(ATOM)
        assert item.title == "Rival raises funding"
        assert item.link == "https://rival.example/funding"
        assert item.summary == "Series B closes."

    def test_limit(self):
        assert len(parse_feed(RSS, limit=1)) == 1

    def test_not_a_feed(self):
        assert parse_feed(b"<html><body>nope</body></html>") == []


class TestFeedItem:
    def test_matches_title_or_summary(self):
        item = FeedItem(title="Senior Python Engineer", link="x", summary="Remote OK")
        assert item.matches(["python"]) is True
        assert item.matches(["remote"]) is True
        assert item.matches(["golang", " "]) is False


class TestFeedClient:
    def test_news_uses_search_url(self):
        web = MagicMock()
        web.fetch = AsyncMock(return_value=RSS)
        items = asyncio.run(FeedClient(web).news("electric cars", limit=1))
        web.fetch.assert_awaited_once_with(news_search_url("electric cars"))
        assert len(items) == 1
        assert "q=electric+cars" in news_search_url("electric cars")

    def test_fetch_error_propagates(self):
        web = MagicMock()
        web.fetch = AsyncMock(side_effect=FetchError("down"))
        with pytest.raises(FetchError):
            asyncio.run(FeedClient(web).fetch_items("https://acme.example/rss"))
