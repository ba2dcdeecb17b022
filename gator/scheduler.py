"""
Periodic driver for the aggregation cycle.

The scheduler runs one cycle, waits one interval, and repeats. The next
cycle is due an interval after the previous one finished, so a cycle that
overruns never causes a burst of catch-up cycles. Cycles never overlap and
a failing cycle never stops the loop.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable

import schedule

from .errors import UsageError
from .logging_utils import get_logger, log_event


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration string such as "30s", "1m30s" or "1.5h" into seconds."""
    raw = (text or "").strip()
    if not raw:
        raise UsageError("empty duration")
    pos = 0
    total = 0.0
    for match in _PART_RE.finditer(raw):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    if pos != len(raw):
        raise UsageError(f"invalid duration '{text}' (examples: 30s, 5m, 1h)")
    if total <= 0:
        raise UsageError(f"duration must be positive, got '{text}'")
    return total


def format_duration(seconds: float) -> str:
    if seconds >= 3600 and seconds % 3600 == 0:
        return f"{int(seconds // 3600)}h"
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)}m"
    return f"{seconds:g}s"


class Scheduler:
    """Runs `cycle` every `interval` seconds until stopped.

    The cycle is a `schedule` job on a private scheduler, driven from the
    calling thread. Waits between jobs block on `stop_event`, so `stop()` from
    a cycle, a signal handler or another thread ends the loop promptly.

    Attributes:
        interval: Seconds between cycles
        cycle: Zero-argument callable run once per tick
        run_immediately: Run the first cycle on start rather than after one interval
        stop_event: Cancellation token; setting it ends the loop at the next wait
        max_cycles: Optional bound on the number of cycles, None for no bound
    """

    def __init__(
        self,
        interval: float,
        cycle: Callable[[], object],
        *,
        run_immediately: bool = True,
        stop_event: threading.Event | None = None,
        max_cycles: int | None = None,
        logger: logging.Logger | None = None,
    ):
        if interval <= 0:
            raise UsageError("interval must be positive")
        self.interval = interval
        self.cycle = cycle
        self.run_immediately = run_immediately
        self.stop_event = stop_event or threading.Event()
        self.max_cycles = max_cycles
        self.logger = logger or get_logger("scheduler")
        self.jobs = schedule.Scheduler()
        self.cycles_run = 0

    def stop(self) -> None:
        self.stop_event.set()

    def run_forever(self) -> int:
        """Drive cycles until stopped or max_cycles is reached; return the cycle count."""
        log_event(
            self.logger,
            f"Collecting feeds every {format_duration(self.interval)}",
            event="scheduler_start",
            interval_seconds=self.interval,
        )
        self.jobs.every(self.interval).seconds.do(self._run_cycle).tag("scrape_feeds")
        try:
            if self.run_immediately and not self._done():
                self.jobs.run_all()
            while not self._done():
                idle = self.jobs.idle_seconds
                if idle is None or self.stop_event.wait(max(idle, 0.0)):
                    break
                self.jobs.run_pending()
        finally:
            self.jobs.clear()
        return self.cycles_run

    def _done(self) -> bool:
        if self.stop_event.is_set():
            return True
        return self.max_cycles is not None and self.cycles_run >= self.max_cycles

    def _run_cycle(self) -> None:
        self.cycles_run += 1
        try:
            self.cycle()
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                f"Cycle {self.cycles_run} failed: {exc}",
                logging.ERROR,
                event="cycle_error",
                error=f"{type(exc).__name__}: {exc}",
            )
