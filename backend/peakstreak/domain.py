"""
PeakStreak Backend: Domain Entities
====================================

What:  Passive records passed between the gateway, the services and the HTTP layer.
Why:   Services work on these, never on ORM rows, so any store that can fill
       them in satisfies the gateway contract.
How:   Pydantic models with `from_attributes=True`, so a gateway can build
       them straight from SQLAlchemy rows (`User.model_validate(row)`).

Serialization rules:
    - `User.hashed_password` is excluded from every dump. Services also clear
      it (`sanitized()`) before a User leaves the core.
    - HabitLog.log_date is a calendar date with no time of day.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    hashed_password: Optional[str] = Field(default=None, exclude=True, repr=False)
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    def sanitized(self) -> "User":
        """Copy of this user with the password hash cleared."""
        return self.model_copy(update={"hashed_password": None})

    def to_public(self) -> "PublicUser":
        return PublicUser(id=self.id, username=self.username, avatar_url=self.avatar_url)


class PublicUser(BaseModel):
    """The part of a user anybody may see (lists, search, feeds)."""

    id: uuid.UUID
    username: str
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class Habit(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    color_hue: int = 0
    # True: done / not-done habit (logs store 1 or 0). False: counted habit.
    is_boolean: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HabitLog(BaseModel):
    id: uuid.UUID
    habit_id: uuid.UUID
    log_date: date
    value: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HabitWithLogs(Habit):
    """A habit plus its logs, oldest date first. `logs` is never None."""

    logs: List[HabitLog] = Field(default_factory=list)

    @classmethod
    def from_habit(cls, habit: Habit, logs: List[HabitLog]) -> "HabitWithLogs":
        return cls(**habit.model_dump(), logs=logs)


class ProfileData(BaseModel):
    """
    Composite profile view. Built fresh per request, never persisted or cached.

    The sub-reads behind it are not transactionally linked, so the counts and
    the habit list may reflect slightly different moments.
    """

    user: User
    habits: List[HabitWithLogs]
    is_owner: bool
    followers_count: int
    following_count: int
    is_following: bool


class LeaderboardEntry(BaseModel):
    user: PublicUser
    total_logged_days: int
    habits: List[HabitWithLogs] = Field(default_factory=list)


class ExploreEntry(BaseModel):
    user: PublicUser
    habit: HabitWithLogs
