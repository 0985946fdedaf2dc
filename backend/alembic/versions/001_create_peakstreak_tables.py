"""Create users, habits, habit_logs and followers tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  The initial PeakStreak schema.
How:   Portable column types (sa.Uuid, DATE, TIMESTAMP WITH TIME ZONE) so the
       same revision runs on PostgreSQL and SQLite. Constraint names match
       peakstreak/models/*.py; the gateway relies on "username" / "email"
       appearing in the user uniqueness constraint names.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column(
            "avatar_url",
            sa.String(512),
            nullable=True,
            comment="Public locator returned by the blob store",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "habits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("color_hue", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "is_boolean",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment="Done/not-done habit (logs store 1/0) vs counted habit",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("color_hue >= 0 AND color_hue <= 360", name="ck_habits_color_hue"),
    )
    # "All habits of a user, newest first" (profile page)
    op.create_index("idx_habits_user_id_created_at", "habits", ["user_id", "created_at"])

    op.create_table(
        "habit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("habit_id", sa.Uuid(), nullable=False),
        sa.Column("log_date", sa.Date(), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        # Upsert conflict target; also serves the batched window query
        sa.UniqueConstraint("habit_id", "log_date", name="uq_habit_logs_habit_id_log_date"),
        sa.CheckConstraint("value >= 0", name="ck_habit_logs_value"),
    )
    # Explore page: latest positive log per user
    op.create_index("idx_habit_logs_updated_at", "habit_logs", ["updated_at"])

    op.create_table(
        "followers",
        sa.Column("follower_id", sa.Uuid(), nullable=False),
        sa.Column("following_id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("follower_id", "following_id"),
        sa.ForeignKeyConstraint(["follower_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["following_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_followers_no_self_follow"),
    )
    op.create_index("idx_followers_following_id", "followers", ["following_id"])


def downgrade() -> None:
    """Drop every PeakStreak table, children first. All data is lost."""
    op.drop_index("idx_followers_following_id", table_name="followers")
    op.drop_table("followers")
    op.drop_index("idx_habit_logs_updated_at", table_name="habit_logs")
    op.drop_table("habit_logs")
    op.drop_index("idx_habits_user_id_created_at", table_name="habits")
    op.drop_table("habits")
    op.drop_table("users")
