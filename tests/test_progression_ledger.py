"""
Tests for the progression ledger.

Covers session awards, streak updates, purchases, equip and reset.
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from studyflow.exceptions import AlreadyOwnedError, InsufficientFundsError, ItemNotOwnedError
from studyflow.models.domain import ProgressionState, SessionRecord, StoreItem
from studyflow.services.progression import ProgressionLedger, progression_fields

NOW = datetime(2025, 3, 10, 15, 30, tzinfo=UTC)


def session(minutes: float = 30, started_at: datetime = NOW) -> SessionRecord:
    return SessionRecord(duration_minutes=minutes, started_at=started_at)


class TestApplySession:
    """Tests for ProgressionLedger.apply_session."""

    def test_new_user_first_session(self):
        """First session awards XP to both balances and starts a streak."""
        ledger = ProgressionLedger()
        award = ledger.apply_session(session(10), now=NOW)

        assert award.xp_awarded == 100
        assert ledger.state.spendable_xp == 100
        assert ledger.state.lifetime_xp == 100
        assert ledger.state.streak == 1
        assert ledger.state.last_session_at == NOW
        assert award.level_before == 1
        assert award.level_after == 2
        assert award.leveled_up is True

    def test_streak_continues_from_yesterday(self):
        """last_session_at yesterday with streak 3 becomes 4."""
        state = ProgressionState(streak=3, last_session_at=NOW - timedelta(days=1))
        ledger = ProgressionLedger(state)

        award = ledger.apply_session(session(), now=NOW)

        assert award.streak_before == 3
        assert award.streak_after == 4
        assert ledger.state.streak == 4

    def test_streak_breaks_after_gap(self):
        """last_session_at three days ago with streak 5 becomes 1."""
        state = ProgressionState(streak=5, last_session_at=NOW - timedelta(days=3))
        ledger = ProgressionLedger(state)

        ledger.apply_session(session(), now=NOW)

        assert ledger.state.streak == 1

    def test_same_day_sessions_increment_once(self):
        """Two sessions on one calendar day only extend the streak once."""
        state = ProgressionState(streak=3, last_session_at=NOW - timedelta(days=1))
        ledger = ProgressionLedger(state)

        earlier = NOW - timedelta(hours=2)
        ledger.apply_session(session(started_at=earlier), now=earlier)
        ledger.apply_session(session(), now=NOW)

        assert ledger.state.streak == 4

    def test_backfilled_session_does_not_rewind_last_session(self):
        """An older session earns XP without moving last_session_at back."""
        state = ProgressionState(streak=2, last_session_at=NOW)
        ledger = ProgressionLedger(state)

        older = NOW - timedelta(days=5)
        award = ledger.apply_session(session(10, started_at=older), now=NOW)

        assert award.xp_awarded == 100
        assert ledger.state.last_session_at == NOW
        assert ledger.state.streak == 2

    def test_streak_uses_configured_timezone(self):
        """Calendar days follow the ledger's zone."""
        minus_five = timezone(timedelta(hours=-5))
        # Same UTC day, but the 8th and the 9th at UTC-5
        last = datetime(2025, 3, 9, 2, 0, tzinfo=UTC)
        now = datetime(2025, 3, 9, 23, 0, tzinfo=UTC)
        ledger = ProgressionLedger(ProgressionState(streak=2, last_session_at=last), tz=minus_five)

        ledger.apply_session(session(started_at=now), now=now)

        assert ledger.state.streak == 3

    def test_level_is_derived(self):
        """Level always follows lifetime XP."""
        ledger = ProgressionLedger(ProgressionState(spendable_xp=50, lifetime_xp=350))
        award = ledger.apply_session(session(45), now=NOW)

        assert ledger.state.lifetime_xp == 1025
        assert ledger.state.level == 4
        assert award.level_before == 2
        assert award.leveled_up is True

    def test_previous_state_object_untouched(self):
        """apply_session swaps in a new state rather than mutating."""
        ledger = ProgressionLedger()
        before = ledger.snapshot()

        ledger.apply_session(session(), now=NOW)

        assert before.lifetime_xp == 0
        assert ledger.snapshot() is not before


class TestApplyPurchase:
    """Tests for ProgressionLedger.apply_purchase."""

    def test_debits_spendable_only(self, gold_frame: StoreItem):
        """Purchases never touch lifetime XP, level or streak."""
        state = ProgressionState(spendable_xp=500, lifetime_xp=900, streak=6)
        ledger = ProgressionLedger(state)

        receipt = ledger.apply_purchase(gold_frame)

        assert receipt.balance_before == 500
        assert receipt.balance_after == 200
        assert ledger.state.spendable_xp == 200
        assert ledger.state.lifetime_xp == 900
        assert ledger.state.level == 4
        assert ledger.state.streak == 6
        assert ledger.state.owns("Gold Frame")

    def test_second_purchase_rejected(self, gold_frame: StoreItem):
        """Buying an owned item fails and leaves the balance alone."""
        ledger = ProgressionLedger(ProgressionState(spendable_xp=500, lifetime_xp=500))
        ledger.apply_purchase(gold_frame)

        with pytest.raises(AlreadyOwnedError):
            ledger.apply_purchase(gold_frame)

        assert ledger.state.spendable_xp == 200
        assert ledger.state.inventory == ("Gold Frame",)

    def test_insufficient_funds(self, gold_frame: StoreItem):
        """A failed purchase mutates nothing."""
        state = ProgressionState(spendable_xp=100, lifetime_xp=100)
        ledger = ProgressionLedger(state)

        with pytest.raises(InsufficientFundsError):
            ledger.apply_purchase(gold_frame)

        assert ledger.state is state

    @given(prices=st.lists(st.integers(min_value=0, max_value=400), max_size=8))
    @settings(max_examples=100)
    def test_lifetime_xp_unchanged_by_purchases(self, prices: list[int]):
        """Any sequence of purchases leaves lifetime XP as it was."""
        ledger = ProgressionLedger(ProgressionState(spendable_xp=1000, lifetime_xp=1500))
        for i, price in enumerate(prices):
            try:
                ledger.apply_purchase(StoreItem(id=i, name=f"item-{i}", price=price))
            except InsufficientFundsError:
                pass
            assert ledger.state.lifetime_xp == 1500
            assert ledger.state.spendable_xp <= ledger.state.lifetime_xp


class TestEquipAndReset:
    """Tests for equip and reset."""

    def test_equip_owned(self):
        """An owned item can be equipped and unequipped."""
        ledger = ProgressionLedger(ProgressionState(inventory=("Blue Frame",)))

        assert ledger.equip("Blue Frame").equipped_frame == "Blue Frame"
        assert ledger.equip(None).equipped_frame is None

    def test_equip_unowned(self):
        """Equipping an unowned item fails."""
        ledger = ProgressionLedger()
        with pytest.raises(ItemNotOwnedError):
            ledger.equip("Gold Frame")

    def test_reset_zeroes_everything(self):
        """Reset returns a brand new level-1 state."""
        state = ProgressionState(
            spendable_xp=10,
            lifetime_xp=5000,
            streak=9,
            inventory=("Blue Frame",),
            last_session_at=NOW,
            equipped_frame="Blue Frame",
        )
        ledger = ProgressionLedger(state)

        new_state = ledger.reset()

        assert new_state == ProgressionState()
        assert new_state.level == 1


class TestPersistenceFields:
    """Tests for the per-operation column sets."""

    def test_session_fields_include_level(self):
        """Writing lifetime XP writes the derived level with it."""
        ledger = ProgressionLedger()
        ledger.apply_session(session(45), now=NOW)

        values = ledger.session_fields().values
        assert values == {
            "xp": 675,
            "lifetime_xp": 675,
            "level": 3,
            "streak": 1,
            "last_session_at": NOW,
        }

    def test_purchase_fields(self, gold_frame: StoreItem):
        """Purchases write balance and inventory only."""
        ledger = ProgressionLedger(ProgressionState(spendable_xp=300, lifetime_xp=300))
        ledger.apply_purchase(gold_frame)

        assert ledger.purchase_fields().values == {"xp": 0, "inventory": ["Gold Frame"]}

    def test_no_level_without_lifetime(self):
        """Fields that don't include lifetime XP never carry level."""
        fields = progression_fields(ProgressionState(streak=2), "streak")
        assert fields.values == {"streak": 2}
