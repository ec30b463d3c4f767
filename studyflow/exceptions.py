"""
Exception Classes - Strongly typed exception hierarchy.

Numeric/rule errors (funds, ownership) are recovered by the caller and
shown to the user. PersistenceError is a soft failure: the in-memory
state has already advanced and is not rolled back.
"""


class StudyFlowError(Exception):
    """Base exception for all progression errors."""

    pass


class InsufficientFundsError(StudyFlowError):
    """Raised when spendable XP is below the item price."""

    def __init__(self, balance: int, price: int) -> None:
        self.balance = balance
        self.price = price
        super().__init__(f"Insufficient XP. Balance: {balance}, Price: {price}")


class AlreadyOwnedError(StudyFlowError):
    """Raised when purchasing an item that is already in the inventory."""

    def __init__(self, item_name: str) -> None:
        self.item_name = item_name
        super().__init__(f"Item already owned: {item_name}")


class ItemNotOwnedError(StudyFlowError):
    """Raised when equipping an item that is not in the inventory."""

    def __init__(self, item_name: str) -> None:
        self.item_name = item_name
        super().__init__(f"Item not owned: {item_name}")


class ItemNotFoundError(StudyFlowError):
    """Raised when a store item doesn't exist."""

    def __init__(self, item_id: int) -> None:
        self.item_id = item_id
        super().__init__(f"Store item not found: {item_id}")


class ProfileNotFoundError(StudyFlowError):
    """Raised when a profile doesn't exist."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"Profile not found: {user_id}")


class PersistenceError(StudyFlowError):
    """Raised when the external store read or write fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Persistence failed: {message}")


class NotAuthenticatedError(StudyFlowError):
    """Raised when a mutating operation has no active user identity."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Not authenticated: {reason}")
