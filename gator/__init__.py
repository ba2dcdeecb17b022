"""
gator - a command-line RSS aggregator.

Users register, follow feeds, and a background loop (`gator agg 1m`)
periodically fetches the least-recently-fetched feed and stores its posts.

Example:
    $ gator register alice
    $ gator addfeed "Hacker News" https://news.ycombinator.com/rss
    $ gator agg 30s
"""

__all__ = ["__version__", "Commands", "Command", "State", "Store", "scrape_feeds"]
__version__ = "0.1.0"

from .commands import Command, Commands, State
from .ingest import scrape_feeds
from .store import Store
