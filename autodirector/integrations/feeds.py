"""RSS/Atom feed reading and topical news lookups.

Feeds are parsed with BeautifulSoup's lxml XML parser, which tolerates the
sloppy markup many publishers emit. Topical news uses the Google News RSS
search endpoint.

Usage:
    from autodirector.integrations.feeds import FeedClient

    feeds = FeedClient(web_client)
    items = await feeds.news("electric vehicles", limit=8)
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus

from bs4 import BeautifulSoup

from autodirector.core.exceptions import FetchError
from autodirector.core.logging import get_logger
from autodirector.integrations.web import WebClient

logger = get_logger(__name__)

GOOGLE_NEWS_SEARCH = "https://news.google.com/rss/search?q={query}&hl=en-US&gl=US&ceid=US:en"


@dataclass
class FeedItem:
    """One entry of a feed.

    Attributes:
        title: Entry title
        link: Entry URL
        published: Publication date as given by the feed
        summary: Plain-text summary (tags stripped)
        source: Feed URL the item came from
    """

    title: str
    link: str
    published: str = ""
    summary: str = ""
    source: str = ""

    def matches(self, keywords: list[str]) -> bool:
        """Case-insensitive: any keyword in title or summary."""
        haystack = f"{self.title} {self.summary}".lower()
        return any(k.lower() in haystack for k in keywords if k.strip())


def news_search_url(query: str) -> str:
    return GOOGLE_NEWS_SEARCH.format(query=quote_plus(query))


def _text(node) -> str:
    if node is None:
        return ""
    return " ".join(node.get_text(" ", strip=True).split())


def parse_feed(content: bytes, source: str = "", limit: Optional[int] = None) -> list[FeedItem]:
    """Parse RSS <item> or Atom <entry> elements."""
    soup = BeautifulSoup(content, "xml")
    items: list[FeedItem] = []

    entries = soup.find_all("item") or soup.find_all("entry")
    for entry in entries:
        link_node = entry.find("link")
        link = ""
        if link_node is not None:
            link = link_node.get("href") or _text(link_node)

        summary_node = entry.find("description") or entry.find("summary")
        summary = ""
        if summary_node is not None:
            # Descriptions are often escaped HTML
            summary = _text(BeautifulSoup(summary_node.get_text(), "lxml"))

        published_node = (
            entry.find("pubDate") or entry.find("published") or entry.find("updated")
        )

        items.append(
            FeedItem(
                title=_text(entry.find("title")),
                link=link,
                published=_text(published_node),
                summary=summary,
                source=source,
            )
        )
        if limit is not None and len(items) >= limit:
            break

    return items


class FeedClient:
    """Fetch and parse feeds through a WebClient."""

    def __init__(self, web: WebClient):
        self.web = web

    async def fetch_items(self, feed_url: str, limit: Optional[int] = None) -> list[FeedItem]:
        """Fetch and parse one feed.

        Raises:
            FetchError: If the feed cannot be fetched
        """
        content = await self.web.fetch(feed_url)
        try:
            items = parse_feed(content, source=feed_url, limit=limit)
        except Exception as e:
            raise FetchError(f"Could not parse feed {feed_url}: {e}") from e
        logger.debug("Feed parsed", extra={"context": {"feed": feed_url, "items": len(items)}})
        return items

    async def news(self, topic: str, limit: int = 8) -> list[FeedItem]:
        """Latest news items for a topic."""
        return await self.fetch_items(news_search_url(topic), limit=limit)
