"""Game clock — hours remaining <-> time of day.

A 24-hour game starts at current_hour = 24, which is midnight opening day 1,
and counts down one clock hour per turn: 23 is 1:00 AM, 12 is noon, 1 is
11:00 PM. Hour 0 is the closing midnight, shown as the day after the last.
Longer games span several days; every multiple of 24 is a midnight.
"""

from .models import Store

HOURS_PER_DAY = 24


def clock_hour(current_hour: int) -> int:
    """24 -> 0, 23 -> 1, 12 -> 12, 1 -> 23, 0 -> 0"""
    if current_hour <= 0:
        return 0
    return (HOURS_PER_DAY - current_hour) % HOURS_PER_DAY


def _days_spanning(hours: int) -> int:
    return -(-max(hours, 0) // HOURS_PER_DAY)


def game_day(current_hour: int, max_hours: int = HOURS_PER_DAY) -> int:
    """1-based day of a game that started at current_hour = max_hours.

    max_hours=240: 240 -> 1, 217 -> 1, 216 -> 2, 1 -> 10, 0 -> 11
    """
    return _days_spanning(max_hours) - _days_spanning(current_hour) + 1


def format_clock(current_hour: int, use_12_hour: bool = True) -> str:
    hour = clock_hour(current_hour)
    if not use_12_hour:
        return f"{hour:02d}:00"
    period = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:00 {period}"


def format_game_time(current_hour: int, max_hours: int = HOURS_PER_DAY) -> str:
    """e.g. "Day 1, 12:00 PM" """
    return f"Day {game_day(current_hour, max_hours)}, {format_clock(current_hour)}"


def is_store_open(store: Store, current_hour: int) -> bool:
    """open_hour <= time of day < close_hour; close before open wraps midnight."""
    hour = clock_hour(current_hour)
    if store.open_hour <= store.close_hour:
        return store.open_hour <= hour < store.close_hour
    return hour >= store.open_hour or hour < store.close_hour
