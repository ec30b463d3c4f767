"""
API Models - Pydantic models for request/response validation.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Rarity(str, Enum):
    """Store item rarity tier (display only)."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class MessageRole(str, Enum):
    """Author of a chat turn."""

    USER = "user"
    MODEL = "model"


# ============================================================================
# Profile Models
# ============================================================================


class LevelProgressResponse(BaseModel):
    """Level bar data derived from lifetime XP."""

    level: int
    lifetime_xp: int
    level_floor_xp: int
    next_level_xp: int
    xp_to_next_level: int
    progress_percent: float


class ProfileResponse(BaseModel):
    """GET /v1/profile response."""

    user_id: str
    email: str
    full_name: str
    avatar_url: str | None = None
    spendable_xp: int
    lifetime_xp: int
    level: int
    streak: int
    inventory: list[str]
    equipped_frame: str | None = None
    progress: LevelProgressResponse
    is_pro: bool = False
    daily_messages_count: int = 0
    daily_messages_remaining: int | None = None
    last_session_at: datetime | None = None


class PublicProfileResponse(BaseModel):
    """GET /v1/profiles/{user_id} response - no quota or balance fields."""

    user_id: str
    full_name: str
    avatar_url: str | None = None
    lifetime_xp: int
    level: int
    streak: int
    inventory: list[str]
    equipped_frame: str | None = None
    progress: LevelProgressResponse


# ============================================================================
# Session Models
# ============================================================================


class CompleteSessionRequest(BaseModel):
    """POST /v1/sessions request body."""

    duration_minutes: float = Field(..., gt=0, le=24 * 60)
    started_at: datetime | None = Field(
        None, description="Session start; defaults to now when omitted"
    )
    subject_id: str | None = Field(None, max_length=255)

    @field_validator("started_at")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        """Require an explicit offset so calendar days are unambiguous."""
        if v is not None and v.tzinfo is None:
            raise ValueError("started_at must include a timezone offset")
        return v


class SessionResponse(BaseModel):
    """POST /v1/sessions response."""

    xp_awarded: int
    spendable_xp: int
    lifetime_xp: int
    level: int
    leveled_up: bool
    streak: int
    progress: LevelProgressResponse
    persisted: bool = True
    warning: str | None = None


# ============================================================================
# Store Models
# ============================================================================


class StoreItemResponse(BaseModel):
    """Catalog entry."""

    id: int
    name: str
    price: int
    rarity: Rarity
    item_type: str = ""
    image_path: str = ""
    description: str = ""
    description_es: str = ""
    owned: bool = False


class StoreCatalogResponse(BaseModel):
    """GET /v1/store/items response."""

    items: list[StoreItemResponse]
    spendable_xp: int


class PurchaseRequest(BaseModel):
    """POST /v1/store/purchases request body."""

    item_id: int = Field(..., ge=0)


class PurchaseResponse(BaseModel):
    """POST /v1/store/purchases response."""

    item_name: str
    price: int
    spendable_xp: int
    inventory: list[str]
    persisted: bool = True
    warning: str | None = None


class EquipRequest(BaseModel):
    """POST /v1/store/equip request body; null unequips."""

    item_name: str | None = Field(None, min_length=1, max_length=255)


class EquipResponse(BaseModel):
    """POST /v1/store/equip response."""

    equipped_frame: str | None = None
    persisted: bool = True
    warning: str | None = None


# ============================================================================
# Chat Quota Models
# ============================================================================


class ChatGateResponse(BaseModel):
    """POST /v1/chat/gate response."""

    allowed: bool
    is_pro: bool
    message_count: int
    daily_limit: int
    remaining: int | None = None
    count_date: date


class ChatUsageRequest(BaseModel):
    """POST /v1/chat/usage request body."""

    role: MessageRole = MessageRole.USER


class ChatUsageResponse(BaseModel):
    """POST /v1/chat/usage response."""

    recorded: bool
    message_count: int
    remaining: int | None = None
    reason: str | None = None
    persisted: bool = True
    warning: str | None = None


# ============================================================================
# Leaderboard / Reset / Health
# ============================================================================


class LeaderboardEntryResponse(BaseModel):
    """One ranking row."""

    rank: int
    user_id: str
    full_name: str
    avatar_url: str | None = None
    lifetime_xp: int
    level: int
    streak: int
    equipped_frame: str | None = None


class LeaderboardResponse(BaseModel):
    """GET /v1/leaderboard response."""

    entries: list[LeaderboardEntryResponse]


class ResetResponse(BaseModel):
    """POST /v1/profile/reset response."""

    spendable_xp: int
    lifetime_xp: int
    level: int
    streak: int
    inventory: list[str]
    persisted: bool = True
    warning: str | None = None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    version: str
