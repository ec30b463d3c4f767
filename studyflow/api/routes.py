"""
API Routes - FastAPI endpoints for progression, store and chat quota.

All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from studyflow.api.dependencies import UserIdentity, get_current_user, get_progression_service
from studyflow.config import settings
from studyflow.db.session import get_db
from studyflow.exceptions import (
    AlreadyOwnedError,
    InsufficientFundsError,
    ItemNotFoundError,
    ItemNotOwnedError,
    NotAuthenticatedError,
    PersistenceError,
    ProfileNotFoundError,
)
from studyflow.models.api import (
    ChatGateResponse,
    ChatUsageRequest,
    ChatUsageResponse,
    CompleteSessionRequest,
    EquipRequest,
    EquipResponse,
    HealthResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LevelProgressResponse,
    ProfileResponse,
    PublicProfileResponse,
    PurchaseRequest,
    PurchaseResponse,
    ResetResponse,
    SessionResponse,
    StoreCatalogResponse,
    StoreItemResponse,
)
from studyflow.models.domain import SessionRecord
from studyflow.services.level_curve import level_progress
from studyflow.services.progression_service import ProgressionService, UserContext, utc_now

logger = get_logger(__name__)

router = APIRouter()


def _progress(lifetime_xp: int) -> LevelProgressResponse:
    p = level_progress(lifetime_xp)
    return LevelProgressResponse(
        level=p.level,
        lifetime_xp=p.lifetime_xp,
        level_floor_xp=p.level_floor_xp,
        next_level_xp=p.next_level_xp,
        xp_to_next_level=p.xp_to_next_level,
        progress_percent=p.progress_percent,
    )


async def _load_context(service: ProgressionService, user: UserIdentity) -> UserContext:
    """Load the caller's context, mapping failures to HTTP errors."""
    try:
        return await service.load_context(user.user_id, user.email, user.name)
    except NotAuthenticatedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile store unavailable",
        ) from exc


# =============================================================================
# Profile
# =============================================================================


@router.get("/v1/profile", response_model=ProfileResponse)
async def get_profile(
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> ProfileResponse:
    """
    Current user's profile with level bar and remaining chat quota.

    Creates a default level-1 profile on first access.
    """
    ctx = await _load_context(service, user)
    state = ctx.progression
    # Observing the quota first applies a pending UTC day rollover to the count
    remaining = ctx.gate.remaining()

    return ProfileResponse(
        user_id=ctx.user_id,
        email=ctx.profile.email,
        full_name=ctx.profile.full_name,
        avatar_url=ctx.profile.avatar_url,
        spendable_xp=state.spendable_xp,
        lifetime_xp=state.lifetime_xp,
        level=state.level,
        streak=state.streak,
        inventory=list(state.inventory),
        equipped_frame=state.equipped_frame,
        progress=_progress(state.lifetime_xp),
        is_pro=ctx.gate.state.is_privileged,
        daily_messages_count=ctx.gate.state.message_count,
        daily_messages_remaining=remaining,
        last_session_at=state.last_session_at,
    )


@router.get("/v1/profiles/{user_id}", response_model=PublicProfileResponse)
async def get_public_profile(
    user_id: str,
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> PublicProfileResponse:
    """Another user's public profile (no balance or quota)."""
    try:
        profile = await service.public_profile(user_id)
    except ProfileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile store unavailable",
        ) from exc

    state = profile.progression
    return PublicProfileResponse(
        user_id=profile.user_id,
        full_name=profile.full_name,
        avatar_url=profile.avatar_url,
        lifetime_xp=state.lifetime_xp,
        level=state.level,
        streak=state.streak,
        inventory=list(state.inventory),
        equipped_frame=state.equipped_frame,
        progress=_progress(state.lifetime_xp),
    )


@router.post("/v1/profile/reset", response_model=ResetResponse)
async def reset_profile(
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> ResetResponse:
    """Wipe XP, streak, inventory and session history."""
    ctx = await _load_context(service, user)
    outcome = await service.reset(ctx)
    state = outcome.state

    return ResetResponse(
        spendable_xp=state.spendable_xp,
        lifetime_xp=state.lifetime_xp,
        level=state.level,
        streak=state.streak,
        inventory=list(state.inventory),
        persisted=outcome.persisted,
        warning=outcome.warning,
    )


# =============================================================================
# Sessions
# =============================================================================


@router.post("/v1/sessions", response_model=SessionResponse)
async def complete_session(
    request: CompleteSessionRequest,
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> SessionResponse:
    """
    Record a completed focus session.

    Awards duration-based XP, advances the streak and recomputes the
    level. A failed save still returns the awarded values with
    ``persisted=false``.
    """
    ctx = await _load_context(service, user)
    now = utc_now()
    record = SessionRecord(
        duration_minutes=request.duration_minutes,
        started_at=request.started_at or now,
        subject_id=request.subject_id,
    )

    outcome = await service.complete_session(ctx, record, now=now)
    state = outcome.award.state

    return SessionResponse(
        xp_awarded=outcome.award.xp_awarded,
        spendable_xp=state.spendable_xp,
        lifetime_xp=state.lifetime_xp,
        level=state.level,
        leveled_up=outcome.award.leveled_up,
        streak=state.streak,
        progress=_progress(state.lifetime_xp),
        persisted=outcome.persisted,
        warning=outcome.warning,
    )


# =============================================================================
# Store
# =============================================================================


@router.get("/v1/store/items", response_model=StoreCatalogResponse)
async def list_store_items(
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> StoreCatalogResponse:
    """Store catalog, cheapest first, with the caller's ownership flags."""
    ctx = await _load_context(service, user)
    try:
        items = await service.list_catalog()
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store catalog unavailable",
        ) from exc

    state = ctx.progression
    return StoreCatalogResponse(
        items=[
            StoreItemResponse(
                id=item.id,
                name=item.name,
                price=item.price,
                rarity=item.rarity,
                item_type=item.item_type,
                image_path=item.image_path,
                description=item.description,
                description_es=item.description_es,
                owned=state.owns(item.name),
            )
            for item in items
        ],
        spendable_xp=state.spendable_xp,
    )


@router.post("/v1/store/purchases", response_model=PurchaseResponse)
async def purchase_item(
    request: PurchaseRequest,
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> PurchaseResponse:
    """
    Buy a store item with spendable XP.

    Lifetime XP and level are unaffected.
    """
    ctx = await _load_context(service, user)
    try:
        outcome = await service.purchase(ctx, request.item_id)
    except ItemNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except AlreadyOwnedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except InsufficientFundsError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=str(exc),
        ) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store catalog unavailable",
        ) from exc

    return PurchaseResponse(
        item_name=outcome.receipt.item_name,
        price=outcome.receipt.price,
        spendable_xp=outcome.state.spendable_xp,
        inventory=list(outcome.state.inventory),
        persisted=outcome.persisted,
        warning=outcome.warning,
    )


@router.post("/v1/store/equip", response_model=EquipResponse)
async def equip_item(
    request: EquipRequest,
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> EquipResponse:
    """Equip an owned item as the avatar frame; null unequips."""
    ctx = await _load_context(service, user)
    try:
        outcome = await service.equip(ctx, request.item_name)
    except ItemNotOwnedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return EquipResponse(
        equipped_frame=outcome.state.equipped_frame,
        persisted=outcome.persisted,
        warning=outcome.warning,
    )


# =============================================================================
# Chat quota
# =============================================================================


@router.post("/v1/chat/gate", response_model=ChatGateResponse)
async def check_chat_gate(
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> ChatGateResponse:
    """
    Whether the caller may send another tutor message today.

    A check on a new UTC day resets the daily count.
    """
    ctx = await _load_context(service, user)
    decision = await service.check_chat_gate(ctx)

    return ChatGateResponse(
        allowed=decision.allowed,
        is_pro=decision.is_privileged,
        message_count=decision.message_count,
        daily_limit=decision.quota,
        remaining=decision.remaining,
        count_date=decision.count_date,
    )


@router.post("/v1/chat/usage", response_model=ChatUsageResponse)
async def record_chat_usage(
    request: ChatUsageRequest,
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> ChatUsageResponse:
    """Count a chat turn after the tutor backend accepted it."""
    ctx = await _load_context(service, user)
    outcome = await service.record_chat_turn(ctx, request.role)

    if not outcome.recorded and outcome.reason == "daily_limit_reached":
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Daily message limit of {service.quota} reached",
        )

    return ChatUsageResponse(
        recorded=outcome.recorded,
        message_count=outcome.message_count,
        remaining=outcome.remaining,
        reason=outcome.reason,
        persisted=outcome.persisted,
        warning=outcome.warning,
    )


# =============================================================================
# Leaderboard
# =============================================================================


@router.get("/v1/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    user: UserIdentity = Depends(get_current_user),
    service: ProgressionService = Depends(get_progression_service),
) -> LeaderboardResponse:
    """Top users by lifetime XP."""
    try:
        entries = await service.leaderboard()
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Leaderboard unavailable",
        ) from exc

    return LeaderboardResponse(
        entries=[
            LeaderboardEntryResponse(
                rank=e.rank,
                user_id=e.user_id,
                full_name=e.full_name,
                avatar_url=e.avatar_url,
                lifetime_xp=e.lifetime_xp,
                level=e.level,
                streak=e.streak,
                equipped_frame=e.equipped_frame,
            )
            for e in entries
        ]
    )


# =============================================================================
# Health
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_check_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(exc),
            },
        ) from exc

    return HealthResponse(status="healthy", database="connected", version=settings.api_version)
