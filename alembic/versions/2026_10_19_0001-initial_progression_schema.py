"""initial progression schema

Revision ID: 2026_10_19_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the progression tables:
- profiles: XP balances, streak, inventory and daily chat quota per user
- study_sessions: append-only history of completed focus sessions
- store: read-only cosmetic catalog
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("xp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("lifetime_xp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_session_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "inventory",
            postgresql.ARRAY(sa.String(255)),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("equipped_frame", sa.String(255), nullable=True),
        sa.Column("is_pro", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("daily_messages_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_message_date", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("xp >= 0", name="ck_profiles_xp_non_negative"),
        sa.CheckConstraint("lifetime_xp >= 0", name="ck_profiles_lifetime_xp_non_negative"),
        sa.CheckConstraint("level >= 1", name="ck_profiles_level_positive"),
        sa.CheckConstraint("streak >= 0", name="ck_profiles_streak_non_negative"),
        sa.CheckConstraint(
            "daily_messages_count >= 0", name="ck_profiles_daily_messages_non_negative"
        ),
    )
    op.create_index("idx_profiles_lifetime_xp", "profiles", ["lifetime_xp"])

    op.create_table(
        "study_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subject_id", sa.String(255), nullable=True),
        sa.Column("duration_minutes", sa.Float(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("xp_awarded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_study_sessions_duration_positive"),
    )
    op.create_index(
        "idx_study_sessions_user_started", "study_sessions", ["user_id", "started_at"]
    )

    op.create_table(
        "store",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("item", sa.String(255), nullable=False, unique=True),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("image_path", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rarity", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("description_es", sa.Text(), nullable=True),
        sa.CheckConstraint("price >= 0", name="ck_store_price_non_negative"),
    )
    op.create_index("idx_store_price", "store", ["price"])


def downgrade() -> None:
    op.drop_index("idx_store_price", table_name="store")
    op.drop_table("store")
    op.drop_index("idx_study_sessions_user_started", table_name="study_sessions")
    op.drop_table("study_sessions")
    op.drop_index("idx_profiles_lifetime_xp", table_name="profiles")
    op.drop_table("profiles")
