"""
Tests for the session XP calculator.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from studyflow.services.session_xp import bonus_multiplier, session_xp


class TestSessionXp:
    """Tests for session_xp."""

    @pytest.mark.parametrize(
        "minutes,expected",
        [
            (10, 100),
            (24, 240),
            (25, 300),
            (44, 528),
            (45, 675),
            (60, 900),
        ],
    )
    def test_tiers(self, minutes: float, expected: int):
        """Bonus tiers apply from 25 and 45 minutes."""
        assert session_xp(minutes) == expected

    def test_rounds_half_up(self):
        """0.25 minutes is 2.5 XP, which rounds up to 3."""
        assert session_xp(0.25) == 3

    def test_fractional_with_bonus(self):
        """25.5 minutes: 255 * 1.2 = 306."""
        assert session_xp(25.5) == 306

    @pytest.mark.parametrize("minutes", [0, -1, -45])
    def test_non_positive_awards_nothing(self, minutes: float):
        """Zero or negative durations are guarded to 0."""
        assert session_xp(minutes) == 0

    @given(minutes=st.floats(min_value=0.01, max_value=1440, allow_nan=False))
    @settings(max_examples=100)
    def test_never_below_base(self, minutes: float):
        """Bonuses only ever add XP."""
        assert session_xp(minutes) >= round(minutes * 10) - 1


class TestBonusMultiplier:
    """Tests for bonus_multiplier."""

    def test_values(self):
        """Multipliers for each tier."""
        assert bonus_multiplier(24.99) == Decimal("1")
        assert bonus_multiplier(25) == Decimal("1.2")
        assert bonus_multiplier(44.99) == Decimal("1.2")
        assert bonus_multiplier(45) == Decimal("1.5")
