"""
PeakStreak Backend: Follower SQLAlchemy Model
==============================================

What:  One row per directed edge follower → followee in the social graph.

Invariants enforced by the schema:
    - Composite primary key: an edge exists at most once, which makes
      "follow" an idempotent INSERT ... ON CONFLICT DO NOTHING
    - CHECK(follower_id <> following_id): no self-loops, even if a caller
      bypasses the service-level check
    - Both FKs cascade: deleting either user removes the edge
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from peakstreak.database import Base
from peakstreak.models.user import utcnow


class Follower(Base):
    __tablename__ = "followers"

    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    following_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint("follower_id <> following_id", name="ck_followers_no_self_follow"),
        # Follower counts / lists filter on following_id
        Index("idx_followers_following_id", "following_id"),
    )

    def __repr__(self) -> str:
        return f"<Follower({self.follower_id} -> {self.following_id})>"
