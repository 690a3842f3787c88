"""
streaks.py — Streak & completion-rate math
Pure functions over completed calendar days / entries. No database access,
so every value can be re-derived from the ledger at any time.
"""

import math
from datetime import date, timedelta
from typing import Iterable


def current_streak(completed_days: Iterable[date], today: date) -> int:
    """Consecutive completed days ending today, or ending yesterday if today is still open.

    A missing today does not break a streak anchored at yesterday; missing both
    today and yesterday means there is no active streak.
    """
    days = set(completed_days)
    if not days:
        return 0

    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(completed_days: Iterable[date]) -> int:
    """Longest run of consecutive completed days anywhere in the history."""
    longest = 0
    run = 0
    last_day: date | None = None
    for d in sorted(set(completed_days)):
        if last_day is not None and d == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = d
    return longest


def completion_rate(entries: Iterable) -> int:
    """Percentage of existing entries marked completed, rounded half-up. 0 when there are none.

    Only entries that exist are counted: days with no entry at all do not lower the rate.
    """
    entries = list(entries)
    done = sum(1 for e in entries if e.completed)
    return percentage(done, len(entries))


def percentage(part: int, whole: int) -> int:
    """Integer percentage rounded half-up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


def reached_milestone(streak: int, milestones: Iterable[int]) -> bool:
    return streak in set(milestones)
