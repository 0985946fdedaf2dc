"""
PeakStreak Backend: User SQLAlchemy Model
==========================================

What:  ORM model for the `users` table.

Table Design Rationale:
    - UUID primary key generated in Python (portable across PostgreSQL and SQLite)
    - username / email: each backed by a NAMED unique constraint. The gateway
      tells DuplicateUsername from DuplicateEmail by which constraint fired,
      so the names must keep "username" and "email" in them.
    - hashed_password: bcrypt output, never leaves the gateway/service layer
    - avatar_url: public locator returned by the blob store (nullable)
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peakstreak.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # Deleting a user removes habits (and through them, logs) and follow edges.
    # passive_deletes: let the database cascade instead of loading children.
    habits: Mapped[List["Habit"]] = relationship(  # noqa: F821
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
