"""
Session XP Calculator - Focus session duration to XP award.
"""

from decimal import ROUND_HALF_UP, Decimal

XP_PER_MINUTE = 10

# (minimum minutes, multiplier), longest tier first
BONUS_TIERS: tuple[tuple[int, Decimal], ...] = (
    (45, Decimal("1.5")),
    (25, Decimal("1.2")),
)


def bonus_multiplier(duration_minutes: float) -> Decimal:
    """Bonus multiplier for a session of ``duration_minutes``."""
    for threshold, multiplier in BONUS_TIERS:
        if duration_minutes >= threshold:
            return multiplier
    return Decimal("1")


def session_xp(duration_minutes: float) -> int:
    """
    XP awarded for a completed focus session.

    base = minutes * 10, times 1.5 from 45 minutes or 1.2 from 25 minutes,
    rounded half-up. Non-positive durations award nothing.
    """
    if duration_minutes <= 0:
        return 0

    # Decimal keeps 440 * 1.2 at exactly 528 before rounding
    base = Decimal(str(duration_minutes)) * XP_PER_MINUTE
    award = base * bonus_multiplier(duration_minutes)
    return int(award.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
