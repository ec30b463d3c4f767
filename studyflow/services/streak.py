"""
Streak Tracker - Consecutive study days.

Works on calendar dates, not elapsed hours: a session at 23:50 followed by
one at 00:10 continues the chain.
"""

from datetime import UTC, date, datetime, tzinfo


def calendar_day(moment: datetime, tz: tzinfo) -> date:
    """Calendar date of ``moment`` in ``tz`` (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz).date()


def calendar_day_difference(today: date, last: date) -> int:
    """Whole calendar days from ``last`` to ``today``."""
    return (today - last).days


def next_streak(today: date, last_session_date: date | None, streak: int) -> int:
    """
    Streak after a session completed on ``today``.

    ``last_session_date`` is the date of the most recent session before this
    one. Same day keeps the streak, the following day extends it, and any
    gap restarts it at 1.
    """
    if last_session_date is None:
        return 1

    diff = calendar_day_difference(today, last_session_date)

    if diff == 1:
        return streak + 1
    if diff > 1:
        return 1
    # diff <= 0: same day, or out-of-order data which never decrements
    return streak
