"""
Exception hierarchy for gator.

Every failure that should reach the user derives from GatorError so the CLI
can report it and pick an exit code in one place.
"""

from __future__ import annotations


class GatorError(Exception):
    """Base class for all gator errors."""


class ConfigError(GatorError):
    """Configuration file missing, unreadable or incomplete."""


class StoreError(GatorError):
    """The data store could not be opened or failed unexpectedly."""


class CommandNotFoundError(GatorError):
    def __init__(self, name: str):
        super().__init__(f"command '{name}' not found")
        self.name = name


class UsageError(GatorError):
    """A command was called with the wrong arguments."""


class NotFoundError(GatorError):
    """A looked-up record does not exist."""


class AlreadyExistsError(GatorError):
    """A record with the same unique key already exists."""


class UniqueViolationError(AlreadyExistsError):
    """A post with the same URL has already been stored."""

    def __init__(self, url: str):
        super().__init__(f"post already exists: {url}")
        self.url = url


class FetchError(GatorError):
    """A feed could not be fetched or decoded.

    Attributes:
        url: The feed URL
        kind: "timeout", "network", "http" or "decode"
    """

    def __init__(self, url: str, kind: str, message: str):
        super().__init__(f"fetching {url} failed ({kind}): {message}")
        self.url = url
        self.kind = kind
