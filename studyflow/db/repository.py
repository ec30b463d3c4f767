"""
Profile Repository - Reads and writes progression data in the database.

Every database failure surfaces as PersistenceError. Rows are turned into
domain objects through the strict *_from_record constructors so that
callers never see missing or negative fields.
"""

import time
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from studyflow.db.models import Profile, StoreCatalogItem, StudySession
from studyflow.exceptions import PersistenceError
from studyflow.models.domain import (
    DEFAULT_FULL_NAME,
    LeaderboardEntry,
    ProfileFields,
    SessionRecord,
    StoreItem,
    UserProfile,
    profile_from_record,
    store_item_from_record,
)
from studyflow.observability.metrics import metrics
from studyflow.services.level_curve import level_from_xp

logger = get_logger(__name__)

WRITABLE_PROFILE_COLUMNS = frozenset(
    {
        "xp",
        "lifetime_xp",
        "level",
        "streak",
        "last_session_at",
        "inventory",
        "equipped_frame",
        "daily_messages_count",
        "last_message_date",
        "avatar_url",
        "full_name",
        "is_pro",
    }
)


def _profile_to_record(profile: Profile) -> dict[str, Any]:
    """Flatten an ORM profile into a raw record."""
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "xp": profile.xp,
        "lifetime_xp": profile.lifetime_xp,
        "level": profile.level,
        "streak": profile.streak,
        "last_session_at": profile.last_session_at,
        "inventory": profile.inventory,
        "equipped_frame": profile.equipped_frame,
        "is_pro": profile.is_pro,
        "daily_messages_count": profile.daily_messages_count,
        "last_message_date": profile.last_message_date,
    }


def _catalog_to_record(row: StoreCatalogItem) -> dict[str, Any]:
    """Flatten an ORM catalog row into a raw record."""
    return {
        "id": row.id,
        "item": row.item,
        "type": row.type,
        "image_path": row.image_path,
        "price": row.price,
        "rarity": row.rarity,
        "description": row.description,
        "description_es": row.description_es,
    }


class ProfileRepository:
    """Database access for profiles, sessions and the store catalog."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    # ========================================================================
    # Profiles
    # ========================================================================

    async def load_profile(self, user_id: str, today: date) -> UserProfile | None:
        """
        Load a profile, or None if the user has no row yet.

        When the profile has no recorded last session (rows written by
        older clients), the most recent session by start time is used. A
        profile with no lifetime XP is new or reset and skips the lookup, so
        history left behind by a failed reset cannot revive a streak.
        """
        start = time.time()
        try:
            result = await self.session.execute(select(Profile).where(Profile.id == user_id))
            profile = result.scalar_one_or_none()
            if profile is None:
                metrics.record_db_query("load_profile", True, time.time() - start)
                return None

            record = _profile_to_record(profile)
            has_xp = (record["lifetime_xp"] or record["xp"] or 0) > 0
            if record["last_session_at"] is None and has_xp:
                record["last_session_at"] = await self._latest_session_at(user_id)
        except SQLAlchemyError as e:
            metrics.record_db_query("load_profile", False, time.time() - start)
            logger.error("profile_load_failed", user_id=user_id, error=str(e))
            raise PersistenceError(f"Could not load profile {user_id}: {e}") from e

        metrics.record_db_query("load_profile", True, time.time() - start)
        return profile_from_record(record, today)

    async def create_default_profile(
        self,
        user_id: str,
        today: date,
        email: str | None = None,
        full_name: str | None = None,
    ) -> UserProfile:
        """Create a zeroed level-1 profile for a user that has none."""
        profile = Profile(
            id=user_id,
            email=email,
            full_name=full_name or DEFAULT_FULL_NAME,
            xp=0,
            lifetime_xp=0,
            level=1,
            streak=0,
            inventory=[],
            is_pro=False,
            daily_messages_count=0,
            last_message_date=today,
        )
        self.session.add(profile)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError:
            # Race condition - profile created by another request
            await self.session.rollback()
            existing = await self.load_profile(user_id, today)
            if existing is None:
                raise PersistenceError(f"Profile creation failed for {user_id}")
            return existing
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("profile_create_failed", user_id=user_id, error=str(e))
            raise PersistenceError(f"Could not create profile {user_id}: {e}") from e

        metrics.profiles_created_total.inc()
        logger.info("profile_created", user_id=user_id)
        return profile_from_record(_profile_to_record(profile), today)

    async def get_or_create_profile(
        self,
        user_id: str,
        today: date,
        email: str | None = None,
        full_name: str | None = None,
    ) -> UserProfile:
        """Load a profile, creating the default one if it is missing."""
        profile = await self.load_profile(user_id, today)
        if profile is not None:
            return profile

        logger.warning("profile_missing_creating_default", user_id=user_id)
        return await self.create_default_profile(user_id, today, email, full_name)

    async def save_profile_fields(self, user_id: str, fields: ProfileFields) -> None:
        """
        Partially update a profile with only the changed columns.

        Raises:
            ValueError: unknown column, or level written without lifetime_xp
            PersistenceError: database write failed
        """
        if not fields:
            return

        unknown = set(fields.values) - WRITABLE_PROFILE_COLUMNS
        if unknown:
            raise ValueError(f"Not writable profile columns: {sorted(unknown)}")

        values = dict(fields.values)
        if "level" in values:
            if "lifetime_xp" not in values:
                raise ValueError("level can only be written together with lifetime_xp")
            values["level"] = level_from_xp(values["lifetime_xp"])

        start = time.time()
        try:
            await self.session.execute(
                update(Profile).where(Profile.id == user_id).values(**values)
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            metrics.record_db_query("save_profile_fields", False, time.time() - start)
            raise PersistenceError(f"Could not update profile {user_id}: {e}") from e

        metrics.record_db_query("save_profile_fields", True, time.time() - start)
        logger.debug("profile_fields_saved", user_id=user_id, columns=sorted(values))

    # ========================================================================
    # Sessions
    # ========================================================================

    async def append_session(
        self, user_id: str, record: SessionRecord, xp_awarded: int
    ) -> None:
        """Append a completed session to the history."""
        row = StudySession(
            user_id=user_id,
            subject_id=record.subject_id,
            duration_minutes=record.duration_minutes,
            started_at=record.started_at,
            completed=True,
            xp_awarded=xp_awarded,
        )
        self.session.add(row)

        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(f"Could not record session for {user_id}: {e}") from e

    async def _latest_session_at(self, user_id: str) -> datetime | None:
        stmt = select(func.max(StudySession.started_at)).where(StudySession.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_session_at(self, user_id: str) -> datetime | None:
        """Start time of the most recent session by timestamp."""
        try:
            return await self._latest_session_at(user_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read sessions for {user_id}: {e}") from e

    async def delete_sessions(self, user_id: str) -> None:
        """Remove a user's session history (full reset)."""
        try:
            await self.session.execute(delete(StudySession).where(StudySession.user_id == user_id))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(f"Could not delete sessions for {user_id}: {e}") from e

    # ========================================================================
    # Store catalog
    # ========================================================================

    async def list_store_items(self) -> list[StoreItem]:
        """Catalog ordered by price, cheapest first. Unusable rows are skipped."""
        try:
            result = await self.session.execute(
                select(StoreCatalogItem).order_by(StoreCatalogItem.price.asc())
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load store catalog: {e}") from e

        items: list[StoreItem] = []
        for row in rows:
            try:
                items.append(store_item_from_record(_catalog_to_record(row)))
            except ValueError as e:
                logger.warning("store_item_skipped", item_id=row.id, error=str(e))
        return items

    async def get_store_item(self, item_id: int) -> StoreItem | None:
        """Single catalog item by id."""
        try:
            row = await self.session.get(StoreCatalogItem, item_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load store item {item_id}: {e}") from e

        if row is None:
            return None
        return store_item_from_record(_catalog_to_record(row))

    # ========================================================================
    # Leaderboard
    # ========================================================================

    async def leaderboard(self, limit: int) -> list[LeaderboardEntry]:
        """Top profiles by lifetime XP."""
        stmt = (
            select(Profile)
            .order_by(Profile.lifetime_xp.desc(), Profile.created_at.asc())
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
            profiles = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load leaderboard: {e}") from e

        entries: list[LeaderboardEntry] = []
        for rank, profile in enumerate(profiles, start=1):
            lifetime = max(0, profile.lifetime_xp or profile.xp or 0)
            inventory = profile.inventory or []
            entries.append(
                LeaderboardEntry(
                    rank=rank,
                    user_id=profile.id,
                    full_name=profile.full_name or DEFAULT_FULL_NAME,
                    avatar_url=profile.avatar_url,
                    lifetime_xp=lifetime,
                    level=level_from_xp(lifetime),
                    streak=max(0, profile.streak or 0),
                    equipped_frame=(
                        profile.equipped_frame if profile.equipped_frame in inventory else None
                    ),
                )
            )
        return entries
