"""
Progression Ledger - Owns a user's XP, level, streak and inventory.

Pure in-memory aggregate: no I/O. Every operation computes the next state
from the current one and swaps it in with a single assignment. Callers
persist the matching ``*_fields()`` afterwards; persistence never rolls
the ledger back.
"""

from dataclasses import replace
from datetime import UTC, datetime, tzinfo

from structlog import get_logger

from studyflow.exceptions import ItemNotOwnedError
from studyflow.models.domain import (
    ProfileFields,
    ProgressionState,
    PurchaseReceipt,
    SessionAward,
    SessionRecord,
    StoreItem,
)
from studyflow.services.session_xp import session_xp
from studyflow.services.store import StoreLedger
from studyflow.services.streak import calendar_day, next_streak

logger = get_logger(__name__)


def progression_fields(state: ProgressionState, *names: str) -> ProfileFields:
    """
    Profile columns for the given state attributes.

    Writing ``lifetime_xp`` always writes the derived ``level`` with it.
    """
    column_for = {"spendable_xp": "xp"}
    values: dict[str, object] = {}
    for name in names:
        value = getattr(state, name)
        values[column_for.get(name, name)] = list(value) if name == "inventory" else value
    if "lifetime_xp" in names:
        values["level"] = state.level
    return ProfileFields(values)


class ProgressionLedger:
    """In-memory progression aggregate for one user."""

    def __init__(
        self,
        state: ProgressionState | None = None,
        tz: tzinfo = UTC,
        store: StoreLedger | None = None,
    ) -> None:
        """Initialize with a loaded state (defaults to a brand new user)."""
        self._state = state or ProgressionState()
        self._tz = tz
        self._store = store or StoreLedger()

    @property
    def state(self) -> ProgressionState:
        """Current state."""
        return self._state

    def snapshot(self) -> ProgressionState:
        """Current state (immutable, safe to hand out)."""
        return self._state

    def apply_session(self, session: SessionRecord, now: datetime | None = None) -> SessionAward:
        """
        Award XP for a completed session and update the streak.

        The streak is evaluated against ``last_session_at`` as it was before
        this session. ``last_session_at`` only moves forward, so a backfilled
        older session earns XP without rewinding the streak reference.
        """
        before = self._state
        now = now or datetime.now(UTC)

        award = session_xp(session.duration_minutes)
        new_lifetime = before.lifetime_xp + award

        today = calendar_day(now, self._tz)
        last_date = (
            calendar_day(before.last_session_at, self._tz)
            if before.last_session_at is not None
            else None
        )
        new_streak = next_streak(today, last_date, before.streak)

        last_session_at = session.started_at
        if before.last_session_at is not None and before.last_session_at > session.started_at:
            last_session_at = before.last_session_at

        self._state = replace(
            before,
            spendable_xp=before.spendable_xp + award,
            lifetime_xp=new_lifetime,
            streak=new_streak,
            last_session_at=last_session_at,
        )

        logger.info(
            "session_applied",
            duration_minutes=session.duration_minutes,
            xp_awarded=award,
            lifetime_xp=new_lifetime,
            level=self._state.level,
            streak=new_streak,
        )

        return SessionAward(
            xp_awarded=award,
            level_before=before.level,
            level_after=self._state.level,
            streak_before=before.streak,
            streak_after=new_streak,
            state=self._state,
        )

    def apply_purchase(self, item: StoreItem) -> PurchaseReceipt:
        """
        Buy ``item``; debits spendable XP only.

        Raises:
            AlreadyOwnedError: item already owned
            InsufficientFundsError: not enough spendable XP
        """
        new_state, receipt = self._store.purchase(self._state, item)
        self._state = new_state

        logger.info(
            "purchase_applied",
            item_name=item.name,
            price=item.price,
            spendable_xp=new_state.spendable_xp,
        )
        return receipt

    def equip(self, item_name: str | None) -> ProgressionState:
        """
        Set the displayed frame to an owned item, or clear it with None.

        Raises:
            ItemNotOwnedError: item not in inventory
        """
        if item_name is not None and not self._state.owns(item_name):
            raise ItemNotOwnedError(item_name)

        self._state = replace(self._state, equipped_frame=item_name)
        return self._state

    def reset(self) -> ProgressionState:
        """Zero every field (full user data wipe)."""
        self._state = ProgressionState()
        logger.info("progression_reset")
        return self._state

    # ========================================================================
    # Persistence field sets
    # ========================================================================

    def session_fields(self) -> ProfileFields:
        """Columns changed by apply_session."""
        return progression_fields(
            self._state, "spendable_xp", "lifetime_xp", "streak", "last_session_at"
        )

    def purchase_fields(self) -> ProfileFields:
        """Columns changed by apply_purchase."""
        return progression_fields(self._state, "spendable_xp", "inventory")

    def equip_fields(self) -> ProfileFields:
        """Columns changed by equip."""
        return progression_fields(self._state, "equipped_frame")

    def reset_fields(self) -> ProfileFields:
        """Columns changed by reset."""
        return progression_fields(
            self._state,
            "spendable_xp",
            "lifetime_xp",
            "streak",
            "inventory",
            "last_session_at",
            "equipped_frame",
        )
