"""
Handlers for every gator command.

Each handler validates its own arguments and raises a GatorError subclass
on failure; printing the error and choosing the exit code is the CLI's job.
"""

from __future__ import annotations

from rich.markup import escape

from .commands import Command, Commands, State, middleware_logged_in
from .errors import UsageError
from .ingest import scrape_feeds
from .scheduler import Scheduler, format_duration, parse_duration
from .types import User


DEFAULT_BROWSE_LIMIT = 2


def _expect_args(cmd: Command, count: int, usage: str) -> None:
    if len(cmd.args) != count:
        raise UsageError(f"usage: {cmd.name} {usage}".rstrip())


def handler_login(state: State, cmd: Command) -> None:
    _expect_args(cmd, 1, "<username>")
    name = cmd.args[0]
    user = state.store.get_user_by_name(name)
    state.config.set_current_user(user.name)
    state.console.print(f"User '{escape(user.name)}' has been set")


def handler_register(state: State, cmd: Command) -> None:
    _expect_args(cmd, 1, "<username>")
    user = state.store.create_user(cmd.args[0])
    state.config.set_current_user(user.name)
    state.console.print(f"User '{escape(user.name)}' has been created")
    state.logger.debug("Created user %s (%s)", user.name, user.id)


def handler_reset(state: State, cmd: Command) -> None:
    _expect_args(cmd, 0, "")
    state.store.delete_users()
    state.console.print("Database reset: all users, feeds and posts removed")


def handler_users(state: State, cmd: Command) -> None:
    _expect_args(cmd, 0, "")
    for user in state.store.get_users():
        if user.name == state.config.current_user_name:
            state.console.print(f"* {escape(user.name)} [bold](current)[/bold]")
        else:
            state.console.print(f"* {escape(user.name)}")


def handler_agg(state: State, cmd: Command) -> None:
    _expect_args(cmd, 1, "<interval>")
    interval = parse_duration(cmd.args[0])
    state.console.print(f"Collecting feeds every {format_duration(interval)}")
    fetch_cfg = state.config.fetch

    def cycle() -> None:
        scrape_feeds(
            state.store,
            timeout=fetch_cfg.timeout_seconds,
            user_agent=fetch_cfg.user_agent,
            logger=state.logger.getChild("ingest"),
        )

    scheduler = Scheduler(
        interval,
        cycle,
        run_immediately=state.config.agg.run_immediately,
        logger=state.logger.getChild("scheduler"),
    )
    scheduler.run_forever()


def handler_addfeed(state: State, cmd: Command, user: User) -> None:
    _expect_args(cmd, 2, "<name> <url>")
    name, url = cmd.args
    feed = state.store.create_feed(name, url, user.id)
    state.store.create_feed_follow(user.id, feed.id)
    state.console.print(f"Feed '{escape(feed.name)}' added: {escape(feed.url)}")
    state.console.print(f"{escape(user.name)} is now following {escape(feed.name)}")


def handler_feeds(state: State, cmd: Command) -> None:
    _expect_args(cmd, 0, "")
    for feed, owner in state.store.get_feeds():
        state.console.print(f"* {escape(feed.name)}")
        state.console.print(f"  {escape(feed.url)}")
        state.console.print(f"  added by {escape(owner)}")


def handler_follow(state: State, cmd: Command, user: User) -> None:
    _expect_args(cmd, 1, "<url>")
    feed = state.store.get_feed_by_url(cmd.args[0])
    follow = state.store.create_feed_follow(user.id, feed.id)
    state.console.print(f"{escape(follow.user_name)} is now following {escape(follow.feed_name)}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    _expect_args(cmd, 0, "")
    follows = state.store.get_feed_follows_for_user(user.id)
    if not follows:
        state.console.print(f"{escape(user.name)} is not following any feeds")
        return
    for follow in follows:
        state.console.print(f"* {escape(follow.feed_name)}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    _expect_args(cmd, 1, "<url>")
    feed = state.store.get_feed_by_url(cmd.args[0])
    state.store.delete_feed_follow(user.id, feed.id)
    state.console.print(f"{escape(user.name)} unfollowed {escape(feed.name)}")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) > 1:
        raise UsageError(f"usage: {cmd.name} [limit]")
    limit = DEFAULT_BROWSE_LIMIT
    if cmd.args:
        try:
            limit = int(cmd.args[0])
        except ValueError as exc:
            raise UsageError(f"invalid limit: {cmd.args[0]!r}") from exc
        if limit <= 0:
            raise UsageError(f"limit must be positive, got {limit}")

    posts = state.store.get_posts_for_user(user.id, limit)
    state.console.print(f"Found {len(posts)} posts for user {escape(user.name)}:")
    for view in posts:
        post = view.post
        date = post.published_at.strftime("%a %b %d") if post.published_at else "undated"
        state.console.print(f"{date} from {view.feed_name}", markup=False)
        state.console.print(f"--- {post.title or '(untitled)'} ---", markup=False)
        if post.description:
            state.console.print(f"    {post.description}", markup=False)
        state.console.print(f"Link: {post.url}", markup=False)
        state.console.print("=" * 37)


def register_default_commands(commands: Commands) -> Commands:
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_users)
    commands.register("agg", handler_agg)
    commands.register("addfeed", middleware_logged_in(handler_addfeed))
    commands.register("feeds", handler_feeds)
    commands.register("follow", middleware_logged_in(handler_follow))
    commands.register("following", middleware_logged_in(handler_following))
    commands.register("unfollow", middleware_logged_in(handler_unfollow))
    commands.register("browse", middleware_logged_in(handler_browse))
    commands.register("browser", middleware_logged_in(handler_browse))
    return commands
