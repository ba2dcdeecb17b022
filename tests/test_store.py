"""Tests for the SQLite data store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gator.errors import AlreadyExistsError, NotFoundError, StoreError, UniqueViolationError
from gator.store import Store, new_id


T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _store(tmp_path) -> Store:
    return Store.open(str(tmp_path / "gator.db"))


def _post(store: Store, feed_id: str, url: str, published_at=None, title="t"):
    return store.create_post(
        post_id=new_id(),
        created_at=T0,
        updated_at=T0,
        published_at=published_at,
        title=title,
        url=url,
        description=None,
        feed_id=feed_id,
    )


def test_open_accepts_sqlite_url(tmp_path):
    store = Store.open(f"sqlite:///{tmp_path / 'url.db'}")
    store.create_user("alice")
    assert (tmp_path / "url.db").exists()


def test_open_fails_for_unreachable_path(tmp_path):
    with pytest.raises(StoreError):
        Store.open(str(tmp_path / "missing-dir" / "gator.db"))


def test_user_names_are_unique(tmp_path):
    store = _store(tmp_path)
    store.create_user("alice")

    with pytest.raises(AlreadyExistsError):
        store.create_user("alice")
    with pytest.raises(NotFoundError):
        store.get_user_by_name("bob")

    assert store.get_user_by_name("alice").name == "alice"


def test_feed_urls_are_unique(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    store.create_feed("One", "https://example.com/rss", user.id)

    with pytest.raises(AlreadyExistsError):
        store.create_feed("Two", "https://example.com/rss", user.id)


def test_next_feed_prefers_never_fetched_then_oldest(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    a = store.create_feed("A", "https://a.example.com", user.id, now=T0)
    b = store.create_feed("B", "https://b.example.com", user.id, now=T0 + timedelta(seconds=1))
    c = store.create_feed("C", "https://c.example.com", user.id, now=T0 + timedelta(seconds=2))

    store.mark_feed_fetched(a.id, T0 + timedelta(hours=2))
    store.mark_feed_fetched(c.id, T0 + timedelta(hours=1))

    assert store.get_next_feed_to_fetch().id == b.id

    store.mark_feed_fetched(b.id, T0 + timedelta(hours=3))
    assert store.get_next_feed_to_fetch().id == c.id


def test_next_feed_without_feeds_is_not_found(tmp_path):
    with pytest.raises(NotFoundError):
        _store(tmp_path).get_next_feed_to_fetch()


def test_mark_feed_fetched_round_trips_timestamp(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", user.id)
    stamp = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)

    store.mark_feed_fetched(feed.id, stamp)

    assert store.get_feed_by_id(feed.id).last_fetched_at == stamp


def test_duplicate_post_url_is_unique_violation(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", user.id)
    _post(store, feed.id, "https://a.example.com/1")

    with pytest.raises(UniqueViolationError) as excinfo:
        _post(store, feed.id, "https://a.example.com/1")

    assert excinfo.value.url == "https://a.example.com/1"
    assert store.count_posts() == 1


def test_post_for_unknown_feed_is_store_error(tmp_path):
    store = _store(tmp_path)

    with pytest.raises(StoreError):
        _post(store, "no-such-feed", "https://a.example.com/1")


def test_feed_follows_lifecycle(tmp_path):
    store = _store(tmp_path)
    alice = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", alice.id)

    follow = store.create_feed_follow(alice.id, feed.id)
    assert (follow.user_name, follow.feed_name) == ("alice", "A")

    with pytest.raises(AlreadyExistsError):
        store.create_feed_follow(alice.id, feed.id)

    assert [f.feed_name for f in store.get_feed_follows_for_user(alice.id)] == ["A"]

    store.delete_feed_follow(alice.id, feed.id)
    assert store.get_feed_follows_for_user(alice.id) == []

    with pytest.raises(NotFoundError):
        store.delete_feed_follow(alice.id, feed.id)


def test_posts_for_user_only_followed_feeds_most_recent_first(tmp_path):
    store = _store(tmp_path)
    alice = store.create_user("alice")
    followed = store.create_feed("Followed", "https://f.example.com", alice.id)
    other = store.create_feed("Other", "https://o.example.com", alice.id)
    store.create_feed_follow(alice.id, followed.id)

    _post(store, followed.id, "https://f.example.com/old", published_at=T0)
    _post(store, followed.id, "https://f.example.com/new", published_at=T0 + timedelta(days=1))
    _post(store, followed.id, "https://f.example.com/undated", published_at=None)
    _post(store, other.id, "https://o.example.com/1", published_at=T0 + timedelta(days=2))

    views = store.get_posts_for_user(alice.id, 10)
    assert [v.post.url for v in views] == [
        "https://f.example.com/new",
        "https://f.example.com/old",
        "https://f.example.com/undated",
    ]
    assert {v.feed_name for v in views} == {"Followed"}

    assert len(store.get_posts_for_user(alice.id, 2)) == 2


def test_delete_users_cascades(tmp_path):
    store = _store(tmp_path)
    alice = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", alice.id)
    store.create_feed_follow(alice.id, feed.id)
    _post(store, feed.id, "https://a.example.com/1")

    store.delete_users()

    assert store.get_users() == []
    assert store.get_feeds() == []
    assert store.count_posts() == 0


def test_zero_time_published_at_round_trips_and_sorts_last(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", user.id)
    store.create_feed_follow(user.id, feed.id)
    zero = datetime(1, 1, 1, tzinfo=timezone.utc)
    _post(store, feed.id, "https://a.example.com/old", published_at=zero)
    _post(store, feed.id, "https://a.example.com/new", published_at=T0)

    assert sorted(p.published_at for p in store.get_posts_for_feed(feed.id)) == [zero, T0]
    views = store.get_posts_for_user(user.id, 10)
    assert [v.post.url for v in views] == ["https://a.example.com/new", "https://a.example.com/old"]


def test_timestamp_out_of_range_in_utc_is_store_error(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", user.id)
    too_early = datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=1)))

    with pytest.raises(StoreError):
        _post(store, feed.id, "https://a.example.com/1", published_at=too_early)
    assert store.count_posts() == 0


def test_sqlite_failures_surface_as_store_error(tmp_path):
    store = _store(tmp_path)
    user = store.create_user("alice")
    feed = store.create_feed("A", "https://a.example.com", user.id)
    store.conn.execute("DROP TABLE posts")

    with pytest.raises(StoreError):
        store.count_posts()
    with pytest.raises(StoreError):
        _post(store, feed.id, "https://a.example.com/1")
