"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations. Column names follow the
profiles / study_sessions / store tables the client apps already read.
"""

from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    ARRAY,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Profile(Base):
    """
    ORM model for profiles table.

    One row per user. ``xp`` is the spendable balance, ``lifetime_xp`` the
    cumulative total. ``level`` is written only as a function of
    ``lifetime_xp`` for ranking queries and is never read back as truth.
    """

    __tablename__ = "profiles"

    # Primary Key - the identity provider's user id
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Contact / display
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Progression
    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    lifetime_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_session_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Store
    inventory: Mapped[list[str]] = mapped_column(ARRAY(String(255)), nullable=False, default=list)
    equipped_frame: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Chat quota
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    daily_messages_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_message_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("xp >= 0", name="ck_profiles_xp_non_negative"),
        CheckConstraint("lifetime_xp >= 0", name="ck_profiles_lifetime_xp_non_negative"),
        CheckConstraint("level >= 1", name="ck_profiles_level_positive"),
        CheckConstraint("streak >= 0", name="ck_profiles_streak_non_negative"),
        CheckConstraint(
            "daily_messages_count >= 0", name="ck_profiles_daily_messages_non_negative"
        ),
        Index("idx_profiles_lifetime_xp", "lifetime_xp"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Profile(id={self.id}, xp={self.xp}, lifetime_xp={self.lifetime_xp}, "
            f"streak={self.streak})>"
        )


class StudySession(Base):
    """
    ORM model for study_sessions table.

    Append-only history of completed focus sessions.
    """

    __tablename__ = "study_sessions"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    # Back-reference only; subjects are owned elsewhere
    subject_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    duration_minutes: Mapped[float] = mapped_column(Float, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_study_sessions_duration_positive"),
        Index("idx_study_sessions_user_started", "user_id", "started_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<StudySession(id={self.id}, user_id={self.user_id}, "
            f"duration_minutes={self.duration_minutes}, started_at={self.started_at})>"
        )


class StoreCatalogItem(Base):
    """
    ORM model for store table.

    Read-only catalog from the service's perspective.
    """

    __tablename__ = "store"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    item: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    image_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rarity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    description_es: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_store_price_non_negative"),
        Index("idx_store_price", "price"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<StoreCatalogItem(id={self.id}, item={self.item}, price={self.price})>"
