"""
PeakStreak Backend: SQLAlchemy Persistence Gateway
===================================================

What:  The concrete `PersistenceGateway` on top of async SQLAlchemy 2.0.
Why:   Keeps every SQL statement in one module; services only see domain
       entities and classified errors.
How:   One short-lived AsyncSession per call (from the shared session
       factory), so concurrent calls from the profile aggregator never share
       a session. ORM rows are converted to domain entities before the
       session closes.

Dialect notes:
    Upserts use the dialect's native INSERT ... ON CONFLICT (PostgreSQL in
    production, SQLite in tests). Both support RETURNING, so the stored row
    (id, created_at, updated_at) comes back from the same statement.

Query plans worth knowing:
    get_logs_for_habits:
        SELECT ... FROM habit_logs
        WHERE habit_id IN (:ids) AND log_date BETWEEN :start AND :end
        ORDER BY habit_id, log_date
        → range scan on uq_habit_logs_habit_id_log_date
    get_explore_page:
        ROW_NUMBER() OVER (PARTITION BY user ORDER BY updated_at DESC) = 1
        picks each user's latest positive log in a single pass
"""

import logging
import uuid
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from peakstreak import domain
from peakstreak.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    NotFoundError,
    PeakStreakError,
)
from peakstreak.gateway.base import PersistenceGateway
from peakstreak.models import Follower, Habit, HabitLog, User
from peakstreak.models.user import utcnow

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _classify_user_conflict(exc: IntegrityError) -> Optional[PeakStreakError]:
    """
    Decide which uniqueness constraint a failed user INSERT hit.

    asyncpg exposes `constraint_name` on the driver exception (chained under
    SQLAlchemy's DBAPI adapter); SQLite only reports "UNIQUE constraint
    failed: users.<column>". Only the first line of the message is inspected
    so user-supplied values in PostgreSQL's DETAIL line cannot influence it.
    """
    orig = exc.orig
    constraint = getattr(orig, "constraint_name", None) or getattr(
        getattr(orig, "__cause__", None), "constraint_name", None
    )
    haystack = (constraint or str(orig).split("\n", 1)[0]).lower()
    if "username" in haystack:
        return DuplicateUsernameError()
    if "email" in haystack:
        return DuplicateEmailError()
    return None


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    """
    True when an INSERT referenced a parent row that does not exist.

    PostgreSQL reports SQLSTATE 23503 (on the adapted error or the asyncpg
    error chained under it); SQLite only says "FOREIGN KEY constraint failed".
    """
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(
        getattr(orig, "__cause__", None), "sqlstate", None
    )
    if sqlstate:
        return sqlstate == "23503"
    return "foreign key" in str(orig).split("\n", 1)[0].lower()


class SQLAlchemyGateway(PersistenceGateway):
    """PersistenceGateway backed by an `async_sessionmaker`."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _insert_for(session: AsyncSession):
        """Dialect-specific INSERT construct (the one with on_conflict_*)."""
        if session.get_bind().dialect.name == "postgresql":
            return postgresql.insert
        return sqlite.insert

    # ══════════════════════════════════════════════════════════════════════
    # Users
    # ══════════════════════════════════════════════════════════════════════

    async def create_user(self, user: domain.User) -> domain.User:
        row = User(
            id=user.id,
            username=user.username,
            email=user.email,
            hashed_password=user.hashed_password,
            avatar_url=user.avatar_url,
            created_at=utcnow(),
        )
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                duplicate = _classify_user_conflict(exc)
                if duplicate is None:
                    raise
                logger.info("User creation rejected: %s", duplicate.kind.value)
                raise duplicate from exc
            return domain.User.model_validate(row)

    async def get_user_by_username(self, username: str) -> domain.User:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(resource="user")
            return domain.User.model_validate(row)

    async def get_user_by_identifier(self, identifier: str) -> domain.User:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .where(or_(User.username == identifier, User.email == identifier))
                .limit(1)
            )
            row = result.scalars().first()
            if row is None:
                raise NotFoundError(resource="user")
            return domain.User.model_validate(row)

    async def get_user_by_id(self, user_id: uuid.UUID) -> domain.User:
        async with self._session_factory() as session:
            row = await session.get(User, user_id)
            if row is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))
            return domain.User.model_validate(row)

    async def search_users_by_username(self, query: str, limit: int = 40) -> List[domain.PublicUser]:
        pattern = f"%{_escape_like(query)}%"
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .where(User.username.ilike(pattern, escape="\\"))
                .order_by(User.username)
                .limit(limit)
            )
            return [domain.PublicUser.model_validate(row) for row in result.scalars().all()]

    async def get_user_avatar(self, user_id: uuid.UUID) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(User.avatar_url).where(User.id == user_id))
            row = result.one_or_none()
            if row is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))
            return row.avatar_url

    async def update_user_avatar(self, user_id: uuid.UUID, avatar_url: Optional[str]) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(User).where(User.id == user_id).values(avatar_url=avatar_url)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError(resource="user", resource_id=str(user_id))
            await session.commit()

    async def delete_user(self, user_id: uuid.UUID) -> None:
        async with self._session_factory() as session:
            result = await session.execute(delete(User).where(User.id == user_id))
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError(resource="user", resource_id=str(user_id))
            await session.commit()
            logger.info("User %s deleted", user_id)

    # ══════════════════════════════════════════════════════════════════════
    # Habits & Logs
    # ══════════════════════════════════════════════════════════════════════

    async def create_habit(self, habit: domain.Habit) -> domain.Habit:
        row = Habit(
            id=habit.id,
            user_id=habit.user_id,
            name=habit.name,
            color_hue=habit.color_hue,
            is_boolean=habit.is_boolean,
            created_at=utcnow(),
        )
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if not _is_foreign_key_violation(exc):
                    raise
                raise NotFoundError(resource="user", resource_id=str(habit.user_id)) from exc
            return domain.Habit.model_validate(row)

    async def get_habits_by_user_id(self, user_id: uuid.UUID) -> List[domain.Habit]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Habit)
                .where(Habit.user_id == user_id)
                .order_by(Habit.created_at.desc(), Habit.id)
            )
            return [domain.Habit.model_validate(row) for row in result.scalars().all()]

    async def get_habit_by_id(self, habit_id: uuid.UUID) -> domain.Habit:
        async with self._session_factory() as session:
            row = await session.get(Habit, habit_id)
            if row is None:
                raise NotFoundError(resource="habit", resource_id=str(habit_id))
            return domain.Habit.model_validate(row)

    async def update_habit(self, habit: domain.Habit) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Habit)
                .where(Habit.id == habit.id)
                .values(name=habit.name, color_hue=habit.color_hue)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError(resource="habit", resource_id=str(habit.id))
            await session.commit()

    async def delete_habit(self, habit_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        # Ownership check and delete in one statement: no window in which the
        # habit could change hands between a read and the delete.
        async with self._session_factory() as session:
            result = await session.execute(
                delete(Habit).where(Habit.id == habit_id, Habit.user_id == owner_id)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError(resource="habit", resource_id=str(habit_id))
            await session.commit()

    async def upsert_habit_log(self, log: domain.HabitLog) -> domain.HabitLog:
        table = HabitLog.__table__
        now = utcnow()
        async with self._session_factory() as session:
            insert = self._insert_for(session)
            stmt = insert(table).values(
                id=log.id,
                habit_id=log.habit_id,
                log_date=log.log_date,
                value=log.value,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.habit_id, table.c.log_date],
                set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
            ).returning(
                table.c.id,
                table.c.habit_id,
                table.c.log_date,
                table.c.value,
                table.c.created_at,
                table.c.updated_at,
            )
            try:
                stored = (await session.execute(stmt)).one()
                await session.commit()
            except IntegrityError as exc:
                # The habit was deleted after the caller checked ownership
                await session.rollback()
                if not _is_foreign_key_violation(exc):
                    raise
                raise NotFoundError(resource="habit", resource_id=str(log.habit_id)) from exc
            return domain.HabitLog.model_validate(stored)

    async def get_habit_logs(
        self, habit_id: uuid.UUID, window_start: date, window_end: date
    ) -> List[domain.HabitLog]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(HabitLog)
                .where(
                    HabitLog.habit_id == habit_id,
                    HabitLog.log_date >= window_start,
                    HabitLog.log_date <= window_end,
                )
                .order_by(HabitLog.log_date)
            )
            return [domain.HabitLog.model_validate(row) for row in result.scalars().all()]

    async def get_logs_for_habits(
        self, habit_ids: Sequence[uuid.UUID], window_start: date, window_end: date
    ) -> List[domain.HabitLog]:
        if not habit_ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(
                select(HabitLog)
                .where(
                    HabitLog.habit_id.in_(list(habit_ids)),
                    HabitLog.log_date >= window_start,
                    HabitLog.log_date <= window_end,
                )
                .order_by(HabitLog.habit_id, HabitLog.log_date)
            )
            return [domain.HabitLog.model_validate(row) for row in result.scalars().all()]

    # ══════════════════════════════════════════════════════════════════════
    # Social Graph
    # ══════════════════════════════════════════════════════════════════════

    async def follow_user(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> None:
        table = Follower.__table__
        async with self._session_factory() as session:
            insert = self._insert_for(session)
            stmt = insert(table).values(
                follower_id=follower_id,
                following_id=following_id,
                created_at=utcnow(),
            ).on_conflict_do_nothing(index_elements=[table.c.follower_id, table.c.following_id])
            try:
                await session.execute(stmt)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if not _is_foreign_key_violation(exc):
                    raise
                raise NotFoundError(resource="user") from exc

    async def unfollow_user(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(Follower).where(
                    Follower.follower_id == follower_id,
                    Follower.following_id == following_id,
                )
            )
            await session.commit()

    async def is_following(self, follower_id: uuid.UUID, following_id: uuid.UUID) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    exists().where(
                        Follower.follower_id == follower_id,
                        Follower.following_id == following_id,
                    )
                )
            )
            return bool(result.scalar())

    async def get_follower_count(self, user_id: uuid.UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(Follower).where(Follower.following_id == user_id)
            )
            return int(result.scalar_one())

    async def get_following_count(self, user_id: uuid.UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(Follower).where(Follower.follower_id == user_id)
            )
            return int(result.scalar_one())

    async def get_followers(self, user_id: uuid.UUID) -> List[domain.PublicUser]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .join(Follower, User.id == Follower.follower_id)
                .where(Follower.following_id == user_id)
                .order_by(Follower.created_at.desc())
            )
            return [domain.PublicUser.model_validate(row) for row in result.scalars().all()]

    async def get_following(self, user_id: uuid.UUID) -> List[domain.PublicUser]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .join(Follower, User.id == Follower.following_id)
                .where(Follower.follower_id == user_id)
                .order_by(Follower.created_at.desc())
            )
            return [domain.PublicUser.model_validate(row) for row in result.scalars().all()]

    # ══════════════════════════════════════════════════════════════════════
    # Feeds
    # ══════════════════════════════════════════════════════════════════════

    async def _positive_habits_with_logs(
        self, session: AsyncSession, habits: Sequence[Habit]
    ) -> Dict[uuid.UUID, domain.HabitWithLogs]:
        """Attach every positive log (value > 0) to each habit, one query total."""
        habit_ids = [habit.id for habit in habits]
        logs_by_habit: Dict[uuid.UUID, List[domain.HabitLog]] = defaultdict(list)
        if habit_ids:
            result = await session.execute(
                select(HabitLog)
                .where(HabitLog.habit_id.in_(habit_ids), HabitLog.value > 0)
                .order_by(HabitLog.habit_id, HabitLog.log_date)
            )
            for row in result.scalars().all():
                logs_by_habit[row.habit_id].append(domain.HabitLog.model_validate(row))
        return {
            habit.id: domain.HabitWithLogs.from_habit(
                domain.Habit.model_validate(habit), logs_by_habit.get(habit.id, [])
            )
            for habit in habits
        }

    async def get_leaderboard(self, limit: int) -> List[domain.LeaderboardEntry]:
        total = func.count(HabitLog.id).label("total_logged_days")
        async with self._session_factory() as session:
            ranked = (
                await session.execute(
                    select(User.id, User.username, User.avatar_url, total)
                    .select_from(User)
                    .join(Habit, Habit.user_id == User.id)
                    .join(HabitLog, HabitLog.habit_id == Habit.id)
                    .where(HabitLog.value > 0)
                    .group_by(User.id, User.username, User.avatar_url)
                    .order_by(total.desc(), User.username)
                    .limit(limit)
                )
            ).all()
            if not ranked:
                return []

            user_ids = [row.id for row in ranked]
            habit_rows = (
                await session.execute(
                    select(Habit)
                    .where(Habit.user_id.in_(user_ids))
                    .order_by(Habit.created_at.desc(), Habit.id)
                )
            ).scalars().all()
            with_logs = await self._positive_habits_with_logs(session, habit_rows)

        habits_by_user: Dict[uuid.UUID, List[domain.HabitWithLogs]] = defaultdict(list)
        for habit in habit_rows:
            habits_by_user[habit.user_id].append(with_logs[habit.id])

        return [
            domain.LeaderboardEntry(
                user=domain.PublicUser(id=row.id, username=row.username, avatar_url=row.avatar_url),
                total_logged_days=int(row.total_logged_days),
                habits=habits_by_user.get(row.id, []),
            )
            for row in ranked
        ]

    async def get_explore_page(self, limit: int) -> List[domain.ExploreEntry]:
        latest_per_user = (
            select(
                Habit.user_id.label("user_id"),
                HabitLog.habit_id.label("habit_id"),
                HabitLog.updated_at.label("updated_at"),
                func.row_number()
                .over(
                    partition_by=Habit.user_id,
                    order_by=(HabitLog.updated_at.desc(), HabitLog.id),
                )
                .label("rank"),
            )
            .select_from(HabitLog)
            .join(Habit, Habit.id == HabitLog.habit_id)
            .where(HabitLog.value > 0)
            .subquery()
        )
        async with self._session_factory() as session:
            picks = (
                await session.execute(
                    select(latest_per_user.c.user_id, latest_per_user.c.habit_id)
                    .where(latest_per_user.c.rank == 1)
                    .order_by(latest_per_user.c.updated_at.desc())
                    .limit(limit)
                )
            ).all()
            if not picks:
                return []

            users = {
                row.id: domain.PublicUser.model_validate(row)
                for row in (
                    await session.execute(
                        select(User).where(User.id.in_([pick.user_id for pick in picks]))
                    )
                ).scalars().all()
            }
            habit_rows = (
                await session.execute(
                    select(Habit).where(Habit.id.in_([pick.habit_id for pick in picks]))
                )
            ).scalars().all()
            with_logs = await self._positive_habits_with_logs(session, habit_rows)

        return [
            domain.ExploreEntry(user=users[pick.user_id], habit=with_logs[pick.habit_id])
            for pick in picks
        ]
