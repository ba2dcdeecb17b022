"""
SQLite-backed data store.

All records live in a single database file. Identities are UUID4 strings
and timestamps are stored as fixed-width UTC ISO-8601 text (four-digit
year, microseconds, +00:00), so ordering by a timestamp column is
chronological.

Every sqlite failure leaves the store as a GatorError: unique-key
collisions as AlreadyExistsError (UniqueViolationError for posts), anything
else as StoreError.
"""

from __future__ import annotations

from datetime import datetime, timezone
import sqlite3
from typing import Any, Sequence
import uuid

from .errors import AlreadyExistsError, NotFoundError, StoreError, UniqueViolationError
from .types import Feed, FeedFollow, Post, PostView, User


SCHEMA = """
CREATE TABLE IF NOT EXISTS users(
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds(
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows(
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE(user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts(
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_feeds_last_fetched ON feeds(last_fetched_at);
CREATE INDEX IF NOT EXISTS idx_posts_feed ON posts(feed_id);
"""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _to_db(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")
    except (OverflowError, ValueError) as exc:
        raise StoreError(f"timestamp out of range: {dt.isoformat()}") from exc


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError as exc:
        raise StoreError(f"malformed timestamp in database: {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _db_path(db_url: str) -> str:
    """Accept a plain path, a sqlite:/// URL or :memory:."""
    if db_url.startswith("sqlite:///"):
        return db_url[len("sqlite:///"):]
    if db_url.startswith("sqlite://"):
        return db_url[len("sqlite://"):] or ":memory:"
    return db_url


class Store:
    """Data store operations used by the command handlers and the aggregator.

    Lookups that find nothing raise NotFoundError; inserts that collide with
    a unique key raise AlreadyExistsError (UniqueViolationError for posts).
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    @classmethod
    def open(cls, db_url: str) -> "Store":
        path = _db_path(db_url)
        try:
            conn = sqlite3.connect(path)
            return cls(conn)
        except sqlite3.Error as exc:
            raise StoreError(f"failed to open database '{db_url}': {exc}") from exc

    def close(self) -> None:
        self.conn.close()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"query failed: {exc}") from exc

    def _query_one(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    def _write(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run one statement in its own transaction.

        IntegrityError is re-raised as is so callers can tell a unique-key
        collision from other failures; every other sqlite error is a StoreError.
        """
        try:
            with self.conn:
                return self.conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            raise StoreError(f"write failed: {exc}") from exc

    # Users

    def create_user(self, name: str, now: datetime | None = None) -> User:
        now = now or utcnow()
        user = User(id=new_id(), created_at=now, updated_at=now, name=name)
        try:
            self._write(
                "INSERT INTO users(id, created_at, updated_at, name) VALUES(?,?,?,?)",
                (user.id, _to_db(now), _to_db(now), name),
            )
        except sqlite3.IntegrityError as exc:
            raise AlreadyExistsError(f"user '{name}' already exists") from exc
        return user

    def get_user_by_name(self, name: str) -> User:
        row = self._query_one("SELECT * FROM users WHERE name=?", (name,))
        if row is None:
            raise NotFoundError(f"user '{name}' not found")
        return _user(row)

    def get_user_by_id(self, user_id: str) -> User:
        row = self._query_one("SELECT * FROM users WHERE id=?", (user_id,))
        if row is None:
            raise NotFoundError(f"user '{user_id}' not found")
        return _user(row)

    def get_users(self) -> list[User]:
        return [_user(r) for r in self._query("SELECT * FROM users ORDER BY created_at, name")]

    def delete_users(self) -> None:
        """Delete every user; feeds, follows and posts go with them."""
        self._write("DELETE FROM users")

    # Feeds

    def create_feed(self, name: str, url: str, user_id: str, now: datetime | None = None) -> Feed:
        now = now or utcnow()
        feed = Feed(id=new_id(), created_at=now, updated_at=now, name=name, url=url, user_id=user_id)
        try:
            self._write(
                "INSERT INTO feeds(id, created_at, updated_at, name, url, user_id) VALUES(?,?,?,?,?,?)",
                (feed.id, _to_db(now), _to_db(now), name, url, user_id),
            )
        except sqlite3.IntegrityError as exc:
            if not _is_unique_violation(exc):
                raise StoreError(f"failed to save feed {url}: {exc}") from exc
            raise AlreadyExistsError(f"feed '{url}' already exists") from exc
        return feed

    def get_feeds(self) -> list[tuple[Feed, str]]:
        """Return every feed with the name of the user who added it."""
        rows = self._query(
            "SELECT feeds.*, users.name AS user_name FROM feeds "
            "JOIN users ON users.id = feeds.user_id ORDER BY feeds.created_at"
        )
        return [(_feed(r), r["user_name"]) for r in rows]

    def get_feed_by_url(self, url: str) -> Feed:
        row = self._query_one("SELECT * FROM feeds WHERE url=?", (url,))
        if row is None:
            raise NotFoundError(f"feed '{url}' not found")
        return _feed(row)

    def get_feed_by_id(self, feed_id: str) -> Feed:
        row = self._query_one("SELECT * FROM feeds WHERE id=?", (feed_id,))
        if row is None:
            raise NotFoundError(f"feed '{feed_id}' not found")
        return _feed(row)

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago; never-fetched feeds come first."""
        row = self._query_one(
            "SELECT * FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC, created_at ASC "
            "LIMIT 1"
        )
        if row is None:
            raise NotFoundError("no feeds to fetch")
        return _feed(row)

    def mark_feed_fetched(self, feed_id: str, fetched_at: datetime) -> None:
        try:
            cur = self._write(
                "UPDATE feeds SET last_fetched_at=?, updated_at=? WHERE id=?",
                (_to_db(fetched_at), _to_db(fetched_at), feed_id),
            )
        except sqlite3.IntegrityError as exc:
            raise StoreError(f"failed to stamp feed {feed_id}: {exc}") from exc
        if cur.rowcount == 0:
            raise NotFoundError(f"feed '{feed_id}' not found")

    # Follows

    def create_feed_follow(self, user_id: str, feed_id: str, now: datetime | None = None) -> FeedFollow:
        now = now or utcnow()
        follow_id = new_id()
        try:
            self._write(
                "INSERT INTO feed_follows(id, created_at, updated_at, user_id, feed_id) VALUES(?,?,?,?,?)",
                (follow_id, _to_db(now), _to_db(now), user_id, feed_id),
            )
        except sqlite3.IntegrityError as exc:
            if not _is_unique_violation(exc):
                raise StoreError(f"failed to follow feed: {exc}") from exc
            raise AlreadyExistsError("already following this feed") from exc
        row = self._query_one(
            "SELECT feed_follows.*, users.name AS user_name, feeds.name AS feed_name "
            "FROM feed_follows "
            "JOIN users ON users.id = feed_follows.user_id "
            "JOIN feeds ON feeds.id = feed_follows.feed_id "
            "WHERE feed_follows.id=?",
            (follow_id,),
        )
        return _follow(row)

    def delete_feed_follow(self, user_id: str, feed_id: str) -> None:
        cur = self._write("DELETE FROM feed_follows WHERE user_id=? AND feed_id=?", (user_id, feed_id))
        if cur.rowcount == 0:
            raise NotFoundError("not following this feed")

    def get_feed_follows_for_user(self, user_id: str) -> list[FeedFollow]:
        rows = self._query(
            "SELECT feed_follows.*, users.name AS user_name, feeds.name AS feed_name "
            "FROM feed_follows "
            "JOIN users ON users.id = feed_follows.user_id "
            "JOIN feeds ON feeds.id = feed_follows.feed_id "
            "WHERE feed_follows.user_id=? ORDER BY feed_follows.created_at",
            (user_id,),
        )
        return [_follow(r) for r in rows]

    # Posts

    def create_post(
        self,
        post_id: str,
        created_at: datetime,
        updated_at: datetime,
        published_at: datetime | None,
        title: str | None,
        url: str,
        description: str | None,
        feed_id: str,
    ) -> Post:
        try:
            self._write(
                "INSERT INTO posts(id, created_at, updated_at, title, url, description, published_at, feed_id) "
                "VALUES(?,?,?,?,?,?,?,?)",
                (
                    post_id,
                    _to_db(created_at),
                    _to_db(updated_at),
                    title,
                    url,
                    description,
                    _to_db(published_at),
                    feed_id,
                ),
            )
        except sqlite3.IntegrityError as exc:
            if "posts.url" in str(exc):
                raise UniqueViolationError(url) from exc
            raise StoreError(f"failed to save post {url}: {exc}") from exc
        return Post(
            id=post_id,
            created_at=created_at,
            updated_at=updated_at,
            url=url,
            feed_id=feed_id,
            title=title,
            description=description,
            published_at=published_at,
        )

    def get_posts_for_user(self, user_id: str, limit: int) -> list[PostView]:
        """Return posts from the user's followed feeds, most recent first."""
        rows = self._query(
            "SELECT posts.*, feeds.name AS feed_name FROM posts "
            "JOIN feeds ON feeds.id = posts.feed_id "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "WHERE feed_follows.user_id=? "
            "ORDER BY posts.published_at IS NULL, posts.published_at DESC, posts.created_at DESC "
            "LIMIT ?",
            (user_id, limit),
        )
        return [PostView(post=_post(r), feed_name=r["feed_name"]) for r in rows]

    def get_posts_for_feed(self, feed_id: str) -> list[Post]:
        rows = self._query("SELECT * FROM posts WHERE feed_id=? ORDER BY created_at", (feed_id,))
        return [_post(r) for r in rows]

    def count_posts(self) -> int:
        return self._query_one("SELECT COUNT(*) FROM posts")[0]


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc)


def _user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=row["id"],
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=row["user_id"],
        last_fetched_at=_from_db(row["last_fetched_at"]),
    )


def _follow(row: sqlite3.Row) -> FeedFollow:
    return FeedFollow(
        id=row["id"],
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        user_id=row["user_id"],
        feed_id=row["feed_id"],
        user_name=row["user_name"],
        feed_name=row["feed_name"],
    )


def _post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
        url=row["url"],
        feed_id=row["feed_id"],
        title=row["title"],
        description=row["description"],
        published_at=_from_db(row["published_at"]),
    )
