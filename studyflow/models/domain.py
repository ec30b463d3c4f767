"""
Domain Models - Internal business logic models using dataclasses.

All state is held in immutable dataclasses; ledgers replace the whole
state object on commit so a partial update can never be observed.
Raw database rows enter the domain only through the *_from_record
constructors at the bottom of this module.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from studyflow.models.api import Rarity
from studyflow.services.level_curve import level_from_xp


@dataclass(frozen=True)
class SessionRecord:
    """A completed focus session."""

    duration_minutes: float
    started_at: datetime
    subject_id: str | None = None

    def __post_init__(self) -> None:
        """Validate session fields."""
        if self.started_at.tzinfo is None:
            raise ValueError("started_at must be timezone-aware")


@dataclass(frozen=True)
class StoreItem:
    """Catalog item. ``name`` is the inventory key."""

    id: int
    name: str
    price: int
    rarity: Rarity = Rarity.COMMON
    item_type: str = ""
    image_path: str = ""
    description: str = ""
    description_es: str = ""

    def __post_init__(self) -> None:
        """Validate item constraints."""
        if not self.name:
            raise ValueError("Item name cannot be empty")
        if self.price < 0:
            raise ValueError(f"Item price cannot be negative: {self.price}")


@dataclass(frozen=True)
class ProgressionState:
    """
    Per-user XP, level, streak and inventory.

    ``level`` is not a field: it is always derived from ``lifetime_xp``.
    """

    spendable_xp: int = 0
    lifetime_xp: int = 0
    streak: int = 0
    inventory: tuple[str, ...] = ()
    last_session_at: datetime | None = None
    equipped_frame: str | None = None

    def __post_init__(self) -> None:
        """Validate progression invariants."""
        if self.spendable_xp < 0:
            raise ValueError(f"spendable_xp cannot be negative: {self.spendable_xp}")
        if self.lifetime_xp < 0:
            raise ValueError(f"lifetime_xp cannot be negative: {self.lifetime_xp}")
        if self.streak < 0:
            raise ValueError(f"streak cannot be negative: {self.streak}")
        if len(set(self.inventory)) != len(self.inventory):
            raise ValueError("inventory contains duplicate items")
        if self.equipped_frame is not None and self.equipped_frame not in self.inventory:
            raise ValueError(f"equipped_frame not owned: {self.equipped_frame}")

    @property
    def level(self) -> int:
        """Level derived from lifetime XP."""
        return level_from_xp(self.lifetime_xp)

    def owns(self, item_name: str) -> bool:
        """Check inventory membership."""
        return item_name in self.inventory


@dataclass
class DailyUsageState:
    """AI chat turns used on ``count_date`` (UTC)."""

    message_count: int
    count_date: date
    is_privileged: bool = False

    def __post_init__(self) -> None:
        """Validate usage counter."""
        if self.message_count < 0:
            raise ValueError(f"message_count cannot be negative: {self.message_count}")


@dataclass(frozen=True)
class SessionAward:
    """Outcome of applying a completed session to a ledger."""

    xp_awarded: int
    level_before: int
    level_after: int
    streak_before: int
    streak_after: int
    state: ProgressionState

    @property
    def leveled_up(self) -> bool:
        """Whether the session crossed a level boundary."""
        return self.level_after > self.level_before


@dataclass(frozen=True)
class PurchaseReceipt:
    """Outcome of a successful store purchase."""

    item_name: str
    price: int
    balance_before: int
    balance_after: int


@dataclass(frozen=True)
class UserProfile:
    """A user's profile as loaded from the external store."""

    user_id: str
    email: str
    full_name: str
    avatar_url: str | None
    progression: ProgressionState
    usage: DailyUsageState


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of the lifetime XP ranking."""

    rank: int
    user_id: str
    full_name: str
    avatar_url: str | None
    lifetime_xp: int
    level: int
    streak: int
    equipped_frame: str | None = None


@dataclass(frozen=True)
class ProfileFields:
    """Partial profile update - only the columns an operation changed."""

    values: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.values)


# ============================================================================
# Boundary construction from raw records
# ============================================================================

DEFAULT_FULL_NAME = "Student"


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(0, number)


def _aware(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        try:
            return _aware(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def _as_date(value: Any, default: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return default
    return default


def _unique(names: Any) -> tuple[str, ...]:
    seen: list[str] = []
    for name in names or ():
        name = str(name).strip()
        if name and name not in seen:
            seen.append(name)
    return tuple(seen)


def progression_from_record(record: Mapping[str, Any]) -> ProgressionState:
    """
    Build a ProgressionState from a raw profile record, repairing bad values.

    Negative or missing numbers become 0, lifetime_xp is raised to at least
    the spendable xp, any stored level is ignored, duplicate inventory
    names are dropped and an unowned equipped frame is cleared.
    """
    spendable = _non_negative_int(record.get("xp"))
    # spendable_xp <= lifetime_xp, also covering rows without lifetime_xp
    lifetime = max(_non_negative_int(record.get("lifetime_xp")), spendable)
    inventory = _unique(record.get("inventory"))
    frame = record.get("equipped_frame")

    return ProgressionState(
        spendable_xp=spendable,
        lifetime_xp=lifetime,
        streak=_non_negative_int(record.get("streak")),
        inventory=inventory,
        last_session_at=_aware(record.get("last_session_at")),
        equipped_frame=frame if frame in inventory else None,
    )


def usage_from_record(record: Mapping[str, Any], today: date) -> DailyUsageState:
    """Build a DailyUsageState from a raw profile record."""
    return DailyUsageState(
        message_count=_non_negative_int(record.get("daily_messages_count")),
        count_date=_as_date(record.get("last_message_date"), today),
        is_privileged=bool(record.get("is_pro") or False),
    )


def profile_from_record(record: Mapping[str, Any], today: date) -> UserProfile:
    """Build a fully populated UserProfile from a raw profile record."""
    return UserProfile(
        user_id=str(record["id"]),
        email=str(record.get("email") or ""),
        full_name=str(record.get("full_name") or DEFAULT_FULL_NAME),
        avatar_url=record.get("avatar_url") or None,
        progression=progression_from_record(record),
        usage=usage_from_record(record, today),
    )


def store_item_from_record(record: Mapping[str, Any]) -> StoreItem:
    """Build a StoreItem from a raw catalog row, trimming display strings."""
    raw_rarity = str(record.get("rarity") or "").strip().lower()
    try:
        rarity = Rarity(raw_rarity)
    except ValueError:
        rarity = Rarity.COMMON

    image_path = str(record.get("image_path") or "").strip()
    for junk in ("'", '"', "\r", "\n", "\t"):
        image_path = image_path.replace(junk, "")

    return StoreItem(
        id=int(record["id"]),
        name=str(record.get("item") or "").strip(),
        price=_non_negative_int(record.get("price")),
        rarity=rarity,
        item_type=str(record.get("type") or "").strip(),
        image_path=image_path,
        description=str(record.get("description") or "").strip(),
        description_es=str(record.get("description_es") or "").strip(),
    )
