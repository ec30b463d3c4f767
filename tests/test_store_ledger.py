"""
Tests for the store ledger.
"""

import pytest

from studyflow.exceptions import AlreadyOwnedError, InsufficientFundsError
from studyflow.models.domain import ProgressionState, StoreItem
from studyflow.services.store import StoreLedger


class TestStoreLedger:
    """Tests for StoreLedger.purchase."""

    def test_purchase_success(self, gold_frame: StoreItem):
        """500 XP buys a 300 XP item leaving 200."""
        state = ProgressionState(spendable_xp=500, lifetime_xp=500)

        new_state, receipt = StoreLedger().purchase(state, gold_frame)

        assert new_state.spendable_xp == 200
        assert new_state.inventory == ("Gold Frame",)
        assert receipt.item_name == "Gold Frame"
        assert receipt.price == 300
        assert state.spendable_xp == 500

    def test_exact_balance(self, gold_frame: StoreItem):
        """A balance equal to the price is enough."""
        state = ProgressionState(spendable_xp=300, lifetime_xp=300)
        new_state, _ = StoreLedger().purchase(state, gold_frame)
        assert new_state.spendable_xp == 0

    def test_free_item(self):
        """Zero-price items can be bought with no XP."""
        item = StoreItem(id=9, name="Starter Frame", price=0)
        new_state, _ = StoreLedger().purchase(ProgressionState(), item)
        assert new_state.owns("Starter Frame")

    def test_insufficient_funds_attributes(self, gold_frame: StoreItem):
        """The error reports balance and price."""
        state = ProgressionState(spendable_xp=100, lifetime_xp=100)

        with pytest.raises(InsufficientFundsError) as exc_info:
            StoreLedger().purchase(state, gold_frame)

        assert exc_info.value.balance == 100
        assert exc_info.value.price == 300

    def test_owned_checked_before_funds(self, gold_frame: StoreItem):
        """An owned item reports AlreadyOwned even when unaffordable."""
        state = ProgressionState(spendable_xp=0, lifetime_xp=300, inventory=("Gold Frame",))

        with pytest.raises(AlreadyOwnedError):
            StoreLedger().purchase(state, gold_frame)
