"""
Store Ledger - Purchase validation against spendable XP and inventory.
"""

from dataclasses import replace

from studyflow.exceptions import AlreadyOwnedError, InsufficientFundsError
from studyflow.models.domain import ProgressionState, PurchaseReceipt, StoreItem


class StoreLedger:
    """
    Validates and applies purchases.

    Checks run in a fixed order (ownership, then funds) and the debit and
    inventory append land in one new state, so a rejected purchase leaves
    the caller's state untouched and an accepted one can't half-apply.
    """

    def purchase(
        self, state: ProgressionState, item: StoreItem
    ) -> tuple[ProgressionState, PurchaseReceipt]:
        """
        Buy ``item`` with spendable XP.

        Raises:
            AlreadyOwnedError: item name already in inventory
            InsufficientFundsError: spendable XP below the price
        """
        if state.owns(item.name):
            raise AlreadyOwnedError(item.name)

        if state.spendable_xp < item.price:
            raise InsufficientFundsError(state.spendable_xp, item.price)

        balance_after = state.spendable_xp - item.price
        new_state = replace(
            state,
            spendable_xp=balance_after,
            inventory=(*state.inventory, item.name),
        )

        receipt = PurchaseReceipt(
            item_name=item.name,
            price=item.price,
            balance_before=state.spendable_xp,
            balance_after=balance_after,
        )
        return new_state, receipt
