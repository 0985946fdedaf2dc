"""
PeakStreak Backend: Habit & HabitLog SQLAlchemy Models
=======================================================

What:  ORM models for the `habits` and `habit_logs` tables.

Table Design Rationale:
    habits
      - user_id FK with ON DELETE CASCADE: a habit belongs to exactly one user
      - is_boolean: done/not-done habit vs counted habit
      - (user_id, created_at) index: "all habits of a user, newest first"

    habit_logs
      - UNIQUE(habit_id, log_date): at most one log per habit per calendar day.
        The upsert targets exactly this constraint.
      - log_date is DATE, never a timestamp: logs have day granularity
      - value is an integer; boolean habits store 1/0
      - (habit_id, log_date) is also the access path for the batched
        window query, so the unique constraint doubles as its index
"""

import uuid
from datetime import date, datetime
from typing import List

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peakstreak.database import Base
from peakstreak.models.user import utcnow


class Habit(Base):
    __tablename__ = "habits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color_hue: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_boolean: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    owner: Mapped["User"] = relationship(back_populates="habits")  # noqa: F821
    logs: Mapped[List["HabitLog"]] = relationship(
        back_populates="habit",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("color_hue >= 0 AND color_hue <= 360", name="ck_habits_color_hue"),
        Index("idx_habits_user_id_created_at", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Habit(id={self.id}, name='{self.name}', user_id={self.user_id})>"


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    habit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("habits.id", ondelete="CASCADE"),
        nullable=False,
    )
    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    habit: Mapped["Habit"] = relationship(back_populates="logs")

    __table_args__ = (
        UniqueConstraint("habit_id", "log_date", name="uq_habit_logs_habit_id_log_date"),
        CheckConstraint("value >= 0", name="ck_habit_logs_value"),
        Index("idx_habit_logs_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<HabitLog(habit_id={self.habit_id}, date={self.log_date}, value={self.value})>"
