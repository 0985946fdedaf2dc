"""
PeakStreak Backend: Persistence Gateway Interface
==================================================

What:  Abstract base class defining everything the services read from or
       write to persistent storage.
Why:   Services depend on this contract only. The shipped adapter is
       `SQLAlchemyGateway`; tests use in-memory doubles or mocks.
How:   Concrete gateways inherit from `PersistenceGateway` and implement
       every coroutine below.

Contract-wide rules:
    - Every method is a coroutine and must be safe to await concurrently
      with other calls on the same gateway instance (the profile aggregator
      issues several reads at once).
    - Missing rows raise `NotFoundError`, never return None, except where a
      method documents an empty/zero/False result.
    - Unique-constraint violations on user creation raise
      `DuplicateUsernameError` or `DuplicateEmailError`.
    - Anything else propagates as raised; the service layer classifies it.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence

from peakstreak.domain import (
    ExploreEntry,
    Habit,
    HabitLog,
    LeaderboardEntry,
    PublicUser,
    User,
)


class PersistenceGateway(ABC):
    """
    Typed CRUD, batched log retrieval, social-graph and feed queries.

    Ordering guarantees callers rely on:
        - get_habits_by_user_id: newest created first
        - get_habit_logs / get_logs_for_habits: oldest log_date first
        - get_followers / get_following: newest edge first
        - search_users_by_username: alphabetical
    """

    # ── Users ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """
        Insert a user (with `hashed_password` set).

        Returns the stored user including its creation timestamp.

        Raises:
            DuplicateUsernameError / DuplicateEmailError: decided by which
                uniqueness constraint fired, not by a pre-check query.
        """
        ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User:
        """Exact username match, hash included. Raises NotFoundError."""
        ...

    @abstractmethod
    async def get_user_by_identifier(self, identifier: str) -> User:
        """Match on username OR email, hash included. Raises NotFoundError."""
        ...

    @abstractmethod
    async def get_user_by_id(self, user_id: uuid.UUID) -> User:
        """Raises NotFoundError."""
        ...

    @abstractmethod
    async def search_users_by_username(self, query: str, limit: int = 40) -> List[PublicUser]:
        """Case-insensitive substring match on username."""
        ...

    @abstractmethod
    async def get_user_avatar(self, user_id: uuid.UUID) -> Optional[str]:
        """Current avatar locator (None when unset). Raises NotFoundError."""
        ...

    @abstractmethod
    async def update_user_avatar(self, user_id: uuid.UUID, avatar_url: Optional[str]) -> None:
        """Raises NotFoundError when the user does not exist."""
        ...

    @abstractmethod
    async def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete the user with habits, logs and follow edges. Raises NotFoundError."""
        ...

    # ── Habits & Logs ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_habit(self, habit: Habit) -> Habit:
        """
        Insert a habit; returns it with the stored creation timestamp.

        Raises NotFoundError when the owning user does not exist.
        """
        ...

    @abstractmethod
    async def get_habits_by_user_id(self, user_id: uuid.UUID) -> List[Habit]:
        """All habits of a user, newest first. Empty list when none."""
        ...

    @abstractmethod
    async def get_habit_by_id(self, habit_id: uuid.UUID) -> Habit:
        """Raises NotFoundError."""
        ...

    @abstractmethod
    async def update_habit(self, habit: Habit) -> None:
        """Persist name and color hue. Raises NotFoundError if the row is gone."""
        ...

    @abstractmethod
    async def delete_habit(self, habit_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        """
        Delete a habit only if it belongs to `owner_id`, in ONE statement.

        Raises NotFoundError when no row matched; "absent" and "not yours"
        are indistinguishable to the caller.
        """
        ...

    @abstractmethod
    async def upsert_habit_log(self, log: HabitLog) -> HabitLog:
        """
        Insert-or-update keyed by (habit_id, log_date), atomically.

        When a row for that date exists its value changes and updated_at is
        bumped; its id and created_at are kept. Returns the stored row.
        Raises NotFoundError when the habit does not exist.
        """
        ...

    @abstractmethod
    async def get_habit_logs(
        self, habit_id: uuid.UUID, window_start: date, window_end: date
    ) -> List[HabitLog]:
        """Logs of one habit with window_start <= log_date <= window_end."""
        ...

    @abstractmethod
    async def get_logs_for_habits(
        self, habit_ids: Sequence[uuid.UUID], window_start: date, window_end: date
    ) -> List[HabitLog]:
        """Logs of many habits in ONE query (avoids N+1), same window rule."""
        ...

    # ── Social Graph ──────────────────────────────────────────────────────

    @abstractmethod
    async def follow_user(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> None:
        """Create the edge; a no-op when it already exists. NotFoundError if either user is gone."""
        ...

    @abstractmethod
    async def unfollow_user(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> None:
        """Remove the edge; a no-op when it does not exist."""
        ...

    @abstractmethod
    async def is_following(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def get_follower_count(self, user_id: uuid.UUID) -> int:
        ...

    @abstractmethod
    async def get_following_count(self, user_id: uuid.UUID) -> int:
        ...

    @abstractmethod
    async def get_followers(self, user_id: uuid.UUID) -> List[PublicUser]:
        ...

    @abstractmethod
    async def get_following(self, user_id: uuid.UUID) -> List[PublicUser]:
        ...

    # ── Feeds ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_leaderboard(self, limit: int) -> List[LeaderboardEntry]:
        """
        Users ranked by number of positive logs (value > 0), descending,
        each with all their habits and those habits' positive logs.
        """
        ...

    @abstractmethod
    async def get_explore_page(self, limit: int) -> List[ExploreEntry]:
        """
        Per user, the habit holding their most recently updated positive log;
        entries ordered by that log's updated_at, newest first.
        """
        ...
