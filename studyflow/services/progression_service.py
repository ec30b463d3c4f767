"""
Progression Service - Connects the in-memory ledgers to the database.

Pattern for every mutating operation:
1. Apply the change to the in-memory ledger (raises on rule violations,
   leaving state untouched)
2. Write only the changed profile columns
3. On a write failure, log and report ``persisted=False``; the ledger is
   NOT rolled back and the next load reconciles with the database
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, tzinfo
from zoneinfo import ZoneInfo

from structlog import get_logger

from studyflow.config import settings
from studyflow.db.repository import ProfileRepository
from studyflow.exceptions import (
    AlreadyOwnedError,
    InsufficientFundsError,
    ItemNotFoundError,
    NotAuthenticatedError,
    PersistenceError,
    ProfileNotFoundError,
)
from studyflow.models.api import MessageRole
from studyflow.models.domain import (
    LeaderboardEntry,
    ProgressionState,
    PurchaseReceipt,
    SessionAward,
    SessionRecord,
    StoreItem,
    UserProfile,
)
from studyflow.observability.metrics import metrics
from studyflow.services.progression import ProgressionLedger
from studyflow.services.usage_gate import DailyUsageGate

logger = get_logger(__name__)

PERSISTENCE_WARNING = "Saved locally but not yet synced; it will be retried on next load."


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


@dataclass
class UserContext:
    """Session-scoped state for one authenticated user."""

    user_id: str
    profile: UserProfile
    ledger: ProgressionLedger
    gate: DailyUsageGate

    @property
    def progression(self) -> ProgressionState:
        """Current progression state."""
        return self.ledger.state


@dataclass(frozen=True)
class SessionOutcome:
    """Result of completing a session."""

    award: SessionAward
    persisted: bool
    warning: str | None = None


@dataclass(frozen=True)
class PurchaseOutcome:
    """Result of a successful purchase."""

    receipt: PurchaseReceipt
    state: ProgressionState
    persisted: bool
    warning: str | None = None


@dataclass(frozen=True)
class EquipOutcome:
    """Result of equipping a frame."""

    state: ProgressionState
    persisted: bool
    warning: str | None = None


@dataclass(frozen=True)
class GateDecision:
    """Whether a chat turn may be sent now."""

    allowed: bool
    is_privileged: bool
    message_count: int
    quota: int
    remaining: int | None
    count_date: date


@dataclass(frozen=True)
class UsageOutcome:
    """Result of recording a chat turn."""

    recorded: bool
    message_count: int
    remaining: int | None
    reason: str | None = None
    persisted: bool = True
    warning: str | None = None


@dataclass(frozen=True)
class ResetOutcome:
    """Result of a full progression wipe."""

    state: ProgressionState
    persisted: bool
    warning: str | None = None


class ProgressionService:
    """Loads user contexts and runs ledger operations with persistence."""

    def __init__(
        self,
        repository: ProfileRepository,
        quota: int | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize with a repository; quota and timezone default to settings."""
        self.repository = repository
        self.quota = settings.daily_message_quota if quota is None else quota
        if tz is None:
            tz = UTC if settings.streak_timezone == "UTC" else ZoneInfo(settings.streak_timezone)
        self.tz = tz

    # ========================================================================
    # Context
    # ========================================================================

    async def load_context(
        self,
        user_id: str | None,
        email: str | None = None,
        full_name: str | None = None,
        today: date | None = None,
    ) -> UserContext:
        """
        Load (or create) the user's profile and wrap it in ledgers.

        Raises:
            NotAuthenticatedError: no user identity
            PersistenceError: profile could not be loaded or created
        """
        if not user_id:
            raise NotAuthenticatedError("missing user identity")

        today = today or utc_now().date()
        profile = await self.repository.get_or_create_profile(user_id, today, email, full_name)

        return UserContext(
            user_id=user_id,
            profile=profile,
            ledger=ProgressionLedger(profile.progression, tz=self.tz),
            gate=DailyUsageGate(profile.usage, quota=self.quota),
        )

    async def _persist(
        self, operation: str, user_id: str, *writes: Callable[[], Awaitable[None]]
    ) -> str | None:
        """Run writes in order; returns a warning if any failed.

        Writes are passed uncalled so nothing is left pending when one raises.
        """
        failed = False
        for write in writes:
            try:
                await write()
            except PersistenceError as e:
                failed = True
                metrics.record_persistence_failure(operation)
                logger.warning(
                    "profile_persist_failed",
                    operation=operation,
                    user_id=user_id,
                    error=e.message,
                )
        return PERSISTENCE_WARNING if failed else None

    # ========================================================================
    # Sessions
    # ========================================================================

    async def complete_session(
        self, ctx: UserContext, record: SessionRecord, now: datetime | None = None
    ) -> SessionOutcome:
        """Award XP and streak for a finished focus session."""
        award = ctx.ledger.apply_session(record, now=now)
        metrics.record_session(award.xp_awarded, award.leveled_up)

        fields = ctx.ledger.session_fields()
        warning = await self._persist(
            "complete_session",
            ctx.user_id,
            lambda: self.repository.save_profile_fields(ctx.user_id, fields),
            lambda: self.repository.append_session(ctx.user_id, record, award.xp_awarded),
        )
        return SessionOutcome(award=award, persisted=warning is None, warning=warning)

    # ========================================================================
    # Store
    # ========================================================================

    async def list_catalog(self) -> list[StoreItem]:
        """Store catalog, cheapest first."""
        return await self.repository.list_store_items()

    async def purchase(self, ctx: UserContext, item_id: int) -> PurchaseOutcome:
        """
        Buy a catalog item with spendable XP.

        Raises:
            ItemNotFoundError: unknown item id
            AlreadyOwnedError: item already owned
            InsufficientFundsError: not enough spendable XP
        """
        item = await self.repository.get_store_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)

        try:
            receipt = ctx.ledger.apply_purchase(item)
        except AlreadyOwnedError:
            metrics.record_purchase("already_owned")
            logger.info("purchase_rejected", user_id=ctx.user_id, item=item.name, reason="owned")
            raise
        except InsufficientFundsError as e:
            metrics.record_purchase("insufficient_funds")
            logger.info(
                "purchase_rejected",
                user_id=ctx.user_id,
                item=item.name,
                reason="funds",
                balance=e.balance,
                price=e.price,
            )
            raise

        metrics.record_purchase("success")
        fields = ctx.ledger.purchase_fields()
        warning = await self._persist(
            "purchase",
            ctx.user_id,
            lambda: self.repository.save_profile_fields(ctx.user_id, fields),
        )
        return PurchaseOutcome(
            receipt=receipt,
            state=ctx.ledger.state,
            persisted=warning is None,
            warning=warning,
        )

    async def equip(self, ctx: UserContext, item_name: str | None) -> EquipOutcome:
        """Display an owned item as the avatar frame (None unequips)."""
        state = ctx.ledger.equip(item_name)
        fields = ctx.ledger.equip_fields()
        warning = await self._persist(
            "equip",
            ctx.user_id,
            lambda: self.repository.save_profile_fields(ctx.user_id, fields),
        )
        return EquipOutcome(state=state, persisted=warning is None, warning=warning)

    # ========================================================================
    # Chat quota
    # ========================================================================

    async def check_chat_gate(self, ctx: UserContext, today: date | None = None) -> GateDecision:
        """Whether the user may send another chat turn today."""
        allowed = ctx.gate.can_send(today)
        metrics.record_chat_gate(allowed, ctx.gate.state.is_privileged)

        if ctx.gate.rolled_over:
            # A check on a new day clears yesterday's count even without a send
            fields = ctx.gate.persisted_fields()
            await self._persist(
                "chat_gate_rollover",
                ctx.user_id,
                lambda: self.repository.save_profile_fields(ctx.user_id, fields),
            )

        if not allowed:
            logger.info(
                "chat_quota_exhausted",
                user_id=ctx.user_id,
                message_count=ctx.gate.state.message_count,
                quota=ctx.gate.quota,
            )

        return GateDecision(
            allowed=allowed,
            is_privileged=ctx.gate.state.is_privileged,
            message_count=ctx.gate.state.message_count,
            quota=ctx.gate.quota,
            remaining=ctx.gate.remaining(today),
            count_date=ctx.gate.state.count_date,
        )

    async def record_chat_turn(
        self, ctx: UserContext, role: MessageRole, today: date | None = None
    ) -> UsageOutcome:
        """
        Count a chat turn the backend accepted.

        Only user-authored turns count; the gate is re-checked right before
        incrementing.
        """
        gate = ctx.gate

        if role != MessageRole.USER:
            return UsageOutcome(
                recorded=False,
                message_count=gate.state.message_count,
                remaining=gate.remaining(today),
                reason="model_reply_not_counted",
            )

        if gate.state.is_privileged:
            return UsageOutcome(
                recorded=False,
                message_count=gate.state.message_count,
                remaining=None,
                reason="unlimited",
            )

        if not gate.can_send(today):
            metrics.record_chat_gate(False, False)
            return UsageOutcome(
                recorded=False,
                message_count=gate.state.message_count,
                remaining=0,
                reason="daily_limit_reached",
            )

        count = gate.record_sent(today)
        fields = gate.persisted_fields()
        warning = await self._persist(
            "record_chat_turn",
            ctx.user_id,
            lambda: self.repository.save_profile_fields(ctx.user_id, fields),
        )
        return UsageOutcome(
            recorded=True,
            message_count=count,
            remaining=gate.remaining(today),
            persisted=warning is None,
            warning=warning,
        )

    # ========================================================================
    # Social / reset
    # ========================================================================

    async def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        """Top users by lifetime XP."""
        return await self.repository.leaderboard(limit or settings.leaderboard_limit)

    async def public_profile(self, user_id: str, today: date | None = None) -> UserProfile:
        """
        Another user's profile for display.

        Raises:
            ProfileNotFoundError: no such user
        """
        profile = await self.repository.load_profile(user_id, today or utc_now().date())
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile

    async def reset(self, ctx: UserContext) -> ResetOutcome:
        """Wipe progression and session history. Chat quota and pro status are kept."""
        state = ctx.ledger.reset()
        logger.info("progression_reset_requested", user_id=ctx.user_id)

        fields = ctx.ledger.reset_fields()
        warning = await self._persist(
            "reset",
            ctx.user_id,
            lambda: self.repository.delete_sessions(ctx.user_id),
            lambda: self.repository.save_profile_fields(ctx.user_id, fields),
        )
        return ResetOutcome(state=state, persisted=warning is None, warning=warning)
