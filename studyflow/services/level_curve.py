"""
Level Curve - Quadratic lifetime XP to level mapping.

Reaching level L takes XP_UNIT * (L - 1)^2 lifetime XP. Dashboard, store
and leaderboard all derive level and progress from lifetime XP through
these functions only.
"""

import math
from dataclasses import dataclass

XP_UNIT = 100


def level_from_xp(xp: float) -> int:
    """Level for a lifetime XP total (level 1 covers [0, 100))."""
    xp = max(0.0, xp)
    return max(1, math.floor(math.sqrt(xp / XP_UNIT)) + 1)


def xp_floor_for_level(level: int) -> int:
    """Lifetime XP at which ``level`` is reached."""
    return XP_UNIT * (level - 1) ** 2


def xp_ceil_for_level(level: int) -> int:
    """Lifetime XP at which ``level + 1`` is reached."""
    return XP_UNIT * level**2


def progress_fraction(xp: float) -> float:
    """Percentage (0-100) of the way through the current level."""
    xp = max(0.0, xp)
    level = level_from_xp(xp)
    lo = xp_floor_for_level(level)
    hi = xp_ceil_for_level(level)

    if hi == lo:
        return 100.0

    pct = (xp - lo) / (hi - lo) * 100
    return min(100.0, max(0.0, pct))


@dataclass(frozen=True)
class LevelProgress:
    """Everything a view needs to render a level bar."""

    level: int
    lifetime_xp: int
    level_floor_xp: int
    next_level_xp: int
    xp_to_next_level: int
    progress_percent: float


def level_progress(lifetime_xp: int) -> LevelProgress:
    """Compute level, bounds and progress together from one XP value."""
    lifetime_xp = max(0, lifetime_xp)
    level = level_from_xp(lifetime_xp)
    ceil = xp_ceil_for_level(level)
    return LevelProgress(
        level=level,
        lifetime_xp=lifetime_xp,
        level_floor_xp=xp_floor_for_level(level),
        next_level_xp=ceil,
        xp_to_next_level=ceil - lifetime_xp,
        progress_percent=progress_fraction(lifetime_xp),
    )
