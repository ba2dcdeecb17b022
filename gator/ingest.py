"""
One aggregation cycle: pick the stalest feed, stamp it, fetch it, store its posts.

The feed is stamped as fetched before any network traffic, so a feed that
hangs or fails is not picked again until every other feed has had a turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from .errors import FetchError, GatorError, UniqueViolationError
from .fetcher import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, fetch_feed, parse_published
from .logging_utils import get_logger, log_event
from .store import Store, new_id, utcnow
from .types import Feed, RSSFeed


FetchFn = Callable[..., RSSFeed]


@dataclass
class CycleResult:
    """Outcome of a single aggregation cycle.

    Attributes:
        feed: The feed that was selected
        fetched_at: The timestamp the feed was stamped with
        created: Number of new posts stored
        duplicates: Items skipped because their URL was already stored
        failed: Items that could not be stored for any other reason
        error: The fetch failure, if the feed could not be downloaded
    """
    feed: Feed
    fetched_at: datetime
    created: int = 0
    duplicates: int = 0
    failed: int = 0
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def scrape_feeds(
    store: Store,
    *,
    fetch: FetchFn = fetch_feed,
    now: Callable[[], datetime] = utcnow,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    logger: logging.Logger | None = None,
) -> CycleResult:
    """Run one aggregation cycle.

    Raises:
        NotFoundError: If there are no feeds at all
        StoreError: If the store cannot select or stamp the feed
    """
    logger = logger or get_logger("ingest")

    feed = store.get_next_feed_to_fetch()
    fetched_at = now()
    store.mark_feed_fetched(feed.id, fetched_at)
    log_event(logger, f"Fetching {feed.name} ({feed.url})", event="feed_selected", feed_url=feed.url)

    result = CycleResult(feed=feed, fetched_at=fetched_at)
    try:
        rss = fetch(feed.url, timeout=timeout, user_agent=user_agent)
    except FetchError as exc:
        result.error = exc
        log_event(logger, str(exc), logging.WARNING, event="fetch_failed", feed_url=feed.url, kind=exc.kind)
        return result

    for item in rss.items:
        if not item.link:
            result.failed += 1
            log_event(logger, f"Skipping item without link: {item.title!r}", logging.WARNING, event="post_failed")
            continue
        stamp = now()
        try:
            store.create_post(
                post_id=new_id(),
                created_at=stamp,
                updated_at=stamp,
                published_at=parse_published(item.pub_date),
                title=item.title or None,
                url=item.link,
                description=item.description or None,
                feed_id=feed.id,
            )
        except UniqueViolationError:
            result.duplicates += 1
            log_event(logger, f"Post already stored: {item.link}", logging.DEBUG, event="post_duplicate", post_url=item.link)
            continue
        except GatorError as exc:
            result.failed += 1
            log_event(logger, f"Error saving post {item.link}: {exc}", logging.WARNING, event="post_failed", post_url=item.link)
            continue
        result.created += 1
        log_event(logger, f"Created post: {item.link}", logging.DEBUG, event="post_created", post_url=item.link)

    log_event(
        logger,
        f"{feed.name}: {result.created} new, {result.duplicates} known, {result.failed} failed",
        event="cycle_done",
        feed_url=feed.url,
        new_posts=result.created,
        duplicates=result.duplicates,
        failed=result.failed,
    )
    return result
