"""Tests for duration parsing and the periodic scheduler."""

from __future__ import annotations

import threading
import time

import pytest

from gator.errors import UsageError
from gator.scheduler import Scheduler, format_duration, parse_duration


@pytest.mark.parametrize(
    "text,seconds",
    [
        ("30s", 30.0),
        ("1m", 60.0),
        ("1h", 3600.0),
        ("1h30m", 5400.0),
        ("1.5s", 1.5),
        ("500ms", 0.5),
        ("2m3s", 123.0),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "30", "abc", "1x", "s", "0s", "1h 30m", "-5s"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(UsageError):
        parse_duration(text)


def test_format_duration():
    assert format_duration(3600) == "1h"
    assert format_duration(120) == "2m"
    assert format_duration(1.5) == "1.5s"


def test_first_cycle_runs_immediately_then_every_interval():
    starts: list[float] = []
    scheduler = Scheduler(0.05, lambda: starts.append(time.monotonic()), max_cycles=3)

    began = time.monotonic()
    assert scheduler.run_forever() == 3

    assert starts[0] - began < 0.04
    assert all(b - a >= 0.04 for a, b in zip(starts, starts[1:]))


def test_delayed_first_cycle():
    starts: list[float] = []
    scheduler = Scheduler(
        0.05,
        lambda: starts.append(time.monotonic()),
        run_immediately=False,
        max_cycles=1,
    )

    began = time.monotonic()
    scheduler.run_forever()

    assert len(starts) == 1
    assert starts[0] - began >= 0.04


def test_slow_cycle_never_overlaps_or_bursts():
    spans: list[tuple[float, float]] = []

    def slow_cycle():
        start = time.monotonic()
        time.sleep(0.06)
        spans.append((start, time.monotonic()))

    scheduler = Scheduler(0.02, slow_cycle, max_cycles=3)
    scheduler.run_forever()

    assert len(spans) == 3
    for (_, end), (next_start, _) in zip(spans, spans[1:]):
        assert next_start - end >= 0.015


def test_cycle_errors_do_not_stop_the_loop():
    calls = 0

    def failing_cycle():
        nonlocal calls
        calls += 1
        raise RuntimeError("store unavailable")

    scheduler = Scheduler(0.01, failing_cycle, max_cycles=3)

    assert scheduler.run_forever() == 3
    assert calls == 3


def test_stop_from_a_cycle_ends_loop():
    scheduler: Scheduler

    def cycle():
        if scheduler.cycles_run == 2:
            scheduler.stop()

    scheduler = Scheduler(0.01, cycle)

    assert scheduler.run_forever() == 2


def test_stop_from_another_thread_interrupts_the_wait():
    scheduler = Scheduler(60, lambda: None)
    threading.Timer(0.05, scheduler.stop).start()

    began = time.monotonic()
    assert scheduler.run_forever() == 1
    assert time.monotonic() - began < 5


def test_stopped_before_start_runs_nothing():
    calls = []
    stop = threading.Event()
    stop.set()

    scheduler = Scheduler(0.01, lambda: calls.append(1), stop_event=stop)

    assert scheduler.run_forever() == 0
    assert calls == []


def test_jobs_are_cleared_after_the_loop():
    scheduler = Scheduler(0.01, lambda: None, max_cycles=1)
    scheduler.run_forever()

    assert scheduler.jobs.get_jobs() == []


def test_interval_must_be_positive():
    with pytest.raises(UsageError):
        Scheduler(0, lambda: None)
