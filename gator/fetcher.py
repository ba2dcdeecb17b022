"""
Feed downloading and RSS decoding.

fetch_feed issues a single GET for a feed URL with an overall timeout,
decodes the body with feedparser and HTML-unescapes the text fields, since
RSS producers frequently double-encode markup.

Every failure (request, network, timeout, HTTP status, undecodable body) is
raised as a FetchError; the caller decides what to do with it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import html

import feedparser
import httpx

from .errors import FetchError
from .types import RSSFeed, RSSItem


DEFAULT_TIMEOUT = 60.0
DEFAULT_USER_AGENT = "gator"


def fetch_feed(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    client: httpx.Client | None = None,
) -> RSSFeed:
    """Fetch and decode an RSS feed.

    Args:
        url: The feed URL
        timeout: Overall request timeout in seconds
        user_agent: User-Agent header string
        client: Optional preconfigured client (tests pass one with a mock transport)

    Returns:
        The decoded, unescaped RSSFeed

    Raises:
        FetchError: If the request fails, times out, returns a non-2xx
            status, or the body is not a feed
    """
    headers = {"User-Agent": user_agent}
    try:
        if client is None:
            with httpx.Client(timeout=timeout, headers=headers, follow_redirects=True) as owned:
                resp = owned.get(url)
        else:
            resp = client.get(url, headers=headers, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise FetchError(url, "timeout", f"no response within {timeout:g}s") from exc
    except httpx.InvalidURL as exc:
        raise FetchError(url, "network", f"invalid URL: {exc}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(url, "network", f"{type(exc).__name__}: {exc}") from exc

    if not resp.is_success:
        raise FetchError(url, "http", f"HTTP {resp.status_code}")

    return unescape_feed(parse_rss(resp.content, url=url))


def parse_rss(data: bytes | str, url: str = "") -> RSSFeed:
    """Decode an RSS document into an RSSFeed.

    feedparser is lenient; a document counts as undecodable only when it
    reports a parse problem and no feed format could be detected.
    """
    parsed = feedparser.parse(data)
    if parsed.bozo and not parsed.get("version"):
        reason = parsed.get("bozo_exception")
        raise FetchError(url, "decode", str(reason) if reason else "not a feed")

    channel = parsed.feed
    items = [
        RSSItem(
            title=entry.get("title", "") or "",
            link=entry.get("link", "") or "",
            description=entry.get("summary", "") or entry.get("description", "") or "",
            pub_date=entry.get("published", "") or "",
        )
        for entry in parsed.entries
    ]
    return RSSFeed(
        title=channel.get("title", "") or "",
        link=channel.get("link", "") or "",
        description=channel.get("subtitle", "") or channel.get("description", "") or "",
        items=items,
    )


def unescape_feed(feed: RSSFeed) -> RSSFeed:
    """Return a copy of feed with HTML entities unescaped in titles and descriptions."""
    return RSSFeed(
        title=html.unescape(feed.title),
        link=feed.link,
        description=html.unescape(feed.description),
        items=[
            RSSItem(
                title=html.unescape(item.title),
                link=item.link,
                description=html.unescape(item.description),
                pub_date=item.pub_date,
            )
            for item in feed.items
        ],
    )


def parse_published(value: str | None) -> datetime | None:
    """Parse an item publication date.

    RFC 3339 is tried first, then RFC 822 (the RSS 2.0 format). The result
    is in UTC; naive timestamps are taken as UTC. Empty or unparseable
    values, and dates that fall outside the representable range once
    shifted to UTC, yield None.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    dt: datetime | None = None
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            dt = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError, OverflowError):
            return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None
