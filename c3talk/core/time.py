import time
from datetime import datetime, timedelta, timezone
from typing import Callable

# Seconds since epoch; injectable wherever a component gates on "now"
Clock = Callable[[], float]


def system_clock() -> float:
    return time.time()


def utc_now() -> datetime:
    """Current UTC time (timezone aware)"""
    return datetime.now(timezone.utc)


def one_year_later(dt: datetime, days: int = 365) -> datetime:
    """
    Return the same calendar date one year later when days is the default,
    falling back to Feb 28 for leap days. Other values are a plain offset.
    """
    if days != 365:
        return dt + timedelta(days=days)
    try:
        return dt.replace(year=dt.year + 1)
    except ValueError:
        return dt.replace(year=dt.year + 1, day=28)
