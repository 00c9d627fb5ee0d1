"""Sampling time axis for occupancy snapshots."""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterator, Tuple

from .config import DEFAULT_GRANULARITY_SECONDS, DEFAULT_WINDOW_SECONDS


def to_naive_utc(value: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Naive values are assumed to already be UTC, which is how the platform
    stores WLM timestamps.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def utc_now() -> datetime:
    """Current time as naive UTC, truncated to the whole second."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def series_length(
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
    granularity_seconds: int = DEFAULT_GRANULARITY_SECONDS,
) -> int:
    """Number of instants generate_dt_series() yields.

    Raises:
        ValueError: If either argument is not positive
    """
    if window_seconds <= 0:
        raise ValueError(f"window_seconds must be positive, got {window_seconds}")
    if granularity_seconds <= 0:
        raise ValueError(f"granularity_seconds must be positive, got {granularity_seconds}")
    return math.ceil(window_seconds / granularity_seconds)


def generate_dt_series(
    now: datetime,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
    granularity_seconds: int = DEFAULT_GRANULARITY_SECONDS,
) -> Iterator[datetime]:
    """Iterate back through the lookback window from now.

    Yields ``now - k * granularity_seconds`` for k = 0, 1, ... so that
    series_length() instants cover the window, newest first.

    Args:
        now: Reference time (converted to naive UTC)
        window_seconds: Lookback window size in seconds
        granularity_seconds: Step between instants in seconds

    Yields:
        Naive UTC datetimes

    Raises:
        ValueError: If window or granularity is not positive
    """
    count = series_length(window_seconds, granularity_seconds)
    now = to_naive_utc(now)
    step = timedelta(seconds=granularity_seconds)

    current = now
    for _ in range(count):
        yield current
        current -= step


def window_bounds(now: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> Tuple[datetime, datetime]:
    """Return the (start, end) datetimes spanned by the lookback window.

    Any execution that could be active at a sampled instant overlaps
    this interval.
    """
    now = to_naive_utc(now)
    return now - timedelta(seconds=window_seconds), now
