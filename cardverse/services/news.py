"""EDHREC article feed."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

log = logging.getLogger(__name__)

FEED_URL = "https://edhrec.com/articles/feed"
EXCERPT_LENGTH = 150
REQUEST_TIMEOUT = 15


class NewsFeedError(Exception):
    """The feed could not be fetched or read."""


@dataclass
class NewsItem:
    title: str
    url: str
    date: Optional[str]
    excerpt: str


def _child_text(item: ET.Element, tag: str) -> str:
    child = item.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _format_date(raw: str) -> Optional[str]:
    """RFC 822 pubDate -> YYYY-MM-DD; unparseable dates are shown as given."""
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw).date().isoformat()
    except (TypeError, ValueError):
        return raw


def _excerpt(description: str) -> str:
    text = BeautifulSoup(description, "html.parser").get_text(" ", strip=True)
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[:EXCERPT_LENGTH].rstrip() + "..."


def parse_feed(xml_text: str) -> List[NewsItem]:
    """
    Parse an RSS 2.0 document into news items, in feed order.

    Article descriptions are HTML; tags are stripped and the text cut to
    EXCERPT_LENGTH characters.

    Raises:
        NewsFeedError: if the document is not well-formed XML
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise NewsFeedError(f"Could not parse RSS feed: {e}") from e

    items = []
    for item in root.findall("./channel/item"):
        items.append(NewsItem(
            title=_child_text(item, "title") or "No title",
            url=_child_text(item, "link") or "#",
            date=_format_date(_child_text(item, "pubDate")),
            excerpt=_excerpt(_child_text(item, "description")),
        ))
    return items


def fetch_news(
    limit: Optional[int] = None,
    session: Optional[requests.Session] = None,
    url: str = FEED_URL,
) -> List[NewsItem]:
    """
    Fetch the latest articles from the feed.

    Raises:
        NewsFeedError: on network failure, a non-2xx response or a bad document
    """
    session = session or requests.Session()
    log.debug("Fetching news feed %s", url)
    try:
        response = session.get(url, timeout=REQUEST_TIMEOUT, headers={"User-Agent": "CardVerse/0.3"})
    except requests.exceptions.RequestException as e:
        raise NewsFeedError(f"Failed to fetch RSS feed: {e}") from e

    if not response.ok:
        raise NewsFeedError(f"Failed to fetch RSS feed (HTTP {response.status_code})")

    items = parse_feed(response.text)
    return items[:limit] if limit else items
