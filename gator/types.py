"""
Core data types for gator.

- User, Feed, FeedFollow, Post: records as stored in the data store
- PostView: a post joined with the name of its feed, for browsing
- RSSItem, RSSFeed: a decoded RSS payload as returned by the fetcher
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    id: str
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass
class Feed:
    """A feed registered by a user.

    Attributes:
        id: UUID string
        name: Display name given at `addfeed` time
        url: Source URL, unique across all feeds
        user_id: Owning user
        last_fetched_at: When the aggregator last picked this feed, None if never
    """
    id: str
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: str
    last_fetched_at: datetime | None = None


@dataclass
class FeedFollow:
    id: str
    created_at: datetime
    updated_at: datetime
    user_id: str
    feed_id: str
    user_name: str = ""
    feed_name: str = ""


@dataclass
class Post:
    """A single item ingested from a feed.

    Title, description and published_at are optional because RSS producers
    routinely leave them out. url is unique across all posts.
    """
    id: str
    created_at: datetime
    updated_at: datetime
    url: str
    feed_id: str
    title: str | None = None
    description: str | None = None
    published_at: datetime | None = None


@dataclass
class PostView:
    post: Post
    feed_name: str


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)
