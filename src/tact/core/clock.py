# src/tact/core/clock.py

from __future__ import annotations

import time
from datetime import date, datetime, timedelta


class SystemClock:
    """Wall clock in local time. Timestamps are epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def today(self) -> date:
        return date.today()


def day_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_day_key(key: str) -> date:
    return datetime.strptime(key, "%Y-%m-%d").date()


def next_day_key(key: str) -> str:
    return day_key(parse_day_key(key) + timedelta(days=1))


def today_key(clock) -> str:
    return day_key(clock.today())


def local_time_of(ts_ms: int, tz=None) -> str:
    """HH:MM:SS of an epoch-ms timestamp (local time unless tz is given)."""
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=tz)
    return dt.strftime("%H:%M:%S")
