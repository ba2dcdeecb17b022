"""
Command dispatch.

A Commands registry maps command names to handlers. Every handler takes
the shared State and the invoked Command; handlers that act on behalf of
the logged-in user are wrapped with middleware_logged_in, which resolves
that user first and passes it as a third argument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps
import logging
from typing import Callable

from rich.console import Console

from .config import AppConfig
from .errors import CommandNotFoundError, NotFoundError
from .logging_utils import get_logger
from .store import Store
from .types import User


@dataclass
class State:
    """Shared state handed to every handler.

    Attributes:
        store: The data store
        config: The loaded configuration, including the current user name
        console: Rich console for command output
        logger: Logger for diagnostics
    """
    store: Store
    config: AppConfig
    console: Console = field(default_factory=Console)
    logger: logging.Logger = field(default_factory=get_logger)


@dataclass
class Command:
    name: str
    args: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


class Commands:
    """Registry of command handlers.

    Registering a name twice replaces the earlier handler.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        handler = self._handlers.get(cmd.name)
        if handler is None:
            raise CommandNotFoundError(cmd.name)
        handler(state, cmd)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers


def middleware_logged_in(handler: UserHandler) -> Handler:
    """Wrap a handler so it receives the current user, resolved from the config."""

    @wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        name = state.config.current_user_name
        if not name:
            raise NotFoundError("no user is logged in; run 'gator login <username>' first")
        user = state.store.get_user_by_name(name)
        handler(state, cmd, user)

    return wrapper
