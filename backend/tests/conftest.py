"""
PeakStreak Backend: Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── gateway:         InMemoryGateway, a dict-backed PersistenceGateway
    ├── mock_gateway:    AsyncMock(spec=PersistenceGateway), for call assertions
    ├── hasher:          PasswordHasher at the minimum bcrypt cost (fast)
    ├── blob_store:      LocalBlobStore in a temp directory
    ├── png_bytes / jpeg_bytes: tiny images libmagic reports as image/png, image/jpeg
    ├── test_settings:   Settings pointing at temp paths
    ├── sqlite_gateway:  SQLAlchemyGateway over a fresh aiosqlite file database
    └── test_client:     HTTPX AsyncClient around create_app(InMemoryGateway)
"""

import base64
import os
import tempfile
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings BEFORE any peakstreak imports (peakstreak.main builds an
# app at import time from the environment).
_TEST_DIR = tempfile.mkdtemp(prefix="peakstreak_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/import.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "avatars")
os.environ["JWT_SECRET"] = "test-secret-not-real-but-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from peakstreak import domain  # noqa: E402
from peakstreak.config import Settings  # noqa: E402
from peakstreak.database import create_engine, create_schema, create_session_factory  # noqa: E402
from peakstreak.exceptions import (  # noqa: E402
    DuplicateEmailError,
    DuplicateUsernameError,
    NotFoundError,
)
from peakstreak.gateway import PersistenceGateway, SQLAlchemyGateway  # noqa: E402
from peakstreak.security import PasswordHasher  # noqa: E402
from peakstreak.storage import LocalBlobStore  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Gateway
# ══════════════════════════════════════════════════════════════════════════

class InMemoryGateway(PersistenceGateway):
    """
    Dict-backed gateway with the same observable contract as the SQL one.

    Timestamps come from a strictly increasing fake clock, so "newest first"
    orderings never tie. `calls` records every method invoked, in order.
    """

    def __init__(self):
        self.users: Dict[uuid.UUID, domain.User] = {}
        self.habits: Dict[uuid.UUID, domain.Habit] = {}
        self.logs: Dict[Tuple[uuid.UUID, date], domain.HabitLog] = {}
        self.edges: Dict[Tuple[uuid.UUID, uuid.UUID], datetime] = {}
        self.calls: List[str] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _user(self, user_id: uuid.UUID) -> domain.User:
        if user_id not in self.users:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return self.users[user_id]

    # ── Users ─────────────────────────────────────────────────────────────

    async def create_user(self, user):
        self.calls.append("create_user")
        if any(u.username == user.username for u in self.users.values()):
            raise DuplicateUsernameError()
        if any(u.email == user.email for u in self.users.values()):
            raise DuplicateEmailError()
        stored = user.model_copy(update={"created_at": self._tick()})
        self.users[stored.id] = stored
        return stored

    async def get_user_by_username(self, username):
        self.calls.append("get_user_by_username")
        for user in self.users.values():
            if user.username == username:
                return user
        raise NotFoundError(resource="user")

    async def get_user_by_identifier(self, identifier):
        self.calls.append("get_user_by_identifier")
        for user in self.users.values():
            if identifier in (user.username, user.email):
                return user
        raise NotFoundError(resource="user")

    async def get_user_by_id(self, user_id):
        self.calls.append("get_user_by_id")
        return self._user(user_id)

    async def search_users_by_username(self, query, limit=40):
        self.calls.append("search_users_by_username")
        matches = sorted(
            (u for u in self.users.values() if query.lower() in u.username.lower()),
            key=lambda u: u.username,
        )
        return [u.to_public() for u in matches[:limit]]

    async def get_user_avatar(self, user_id):
        self.calls.append("get_user_avatar")
        return self._user(user_id).avatar_url

    async def update_user_avatar(self, user_id, avatar_url):
        self.calls.append("update_user_avatar")
        user = self._user(user_id)
        self.users[user_id] = user.model_copy(update={"avatar_url": avatar_url})

    async def delete_user(self, user_id):
        self.calls.append("delete_user")
        self._user(user_id)
        del self.users[user_id]
        for habit_id in [h.id for h in self.habits.values() if h.user_id == user_id]:
            self._drop_habit(habit_id)
        for edge in [e for e in self.edges if user_id in e]:
            del self.edges[edge]

    # ── Habits & Logs ─────────────────────────────────────────────────────

    def _drop_habit(self, habit_id):
        del self.habits[habit_id]
        for key in [k for k in self.logs if k[0] == habit_id]:
            del self.logs[key]

    async def create_habit(self, habit):
        self.calls.append("create_habit")
        self._user(habit.user_id)
        stored = habit.model_copy(update={"created_at": self._tick()})
        self.habits[stored.id] = stored
        return stored

    async def get_habits_by_user_id(self, user_id):
        self.calls.append("get_habits_by_user_id")
        owned = [h for h in self.habits.values() if h.user_id == user_id]
        return sorted(owned, key=lambda h: h.created_at, reverse=True)

    async def get_habit_by_id(self, habit_id):
        self.calls.append("get_habit_by_id")
        if habit_id not in self.habits:
            raise NotFoundError(resource="habit", resource_id=str(habit_id))
        return self.habits[habit_id]

    async def update_habit(self, habit):
        self.calls.append("update_habit")
        if habit.id not in self.habits:
            raise NotFoundError(resource="habit", resource_id=str(habit.id))
        self.habits[habit.id] = self.habits[habit.id].model_copy(
            update={"name": habit.name, "color_hue": habit.color_hue}
        )

    async def delete_habit(self, habit_id, owner_id):
        self.calls.append("delete_habit")
        habit = self.habits.get(habit_id)
        if habit is None or habit.user_id != owner_id:
            raise NotFoundError(resource="habit", resource_id=str(habit_id))
        self._drop_habit(habit_id)

    async def upsert_habit_log(self, log):
        self.calls.append("upsert_habit_log")
        if log.habit_id not in self.habits:
            raise NotFoundError(resource="habit", resource_id=str(log.habit_id))
        key = (log.habit_id, log.log_date)
        now = self._tick()
        existing = self.logs.get(key)
        if existing is None:
            stored = log.model_copy(update={"created_at": now, "updated_at": now})
        else:
            stored = existing.model_copy(update={"value": log.value, "updated_at": now})
        self.logs[key] = stored
        return stored

    async def get_habit_logs(self, habit_id, window_start, window_end):
        self.calls.append("get_habit_logs")
        return sorted(
            (
                log
                for (hid, day), log in self.logs.items()
                if hid == habit_id and window_start <= day <= window_end
            ),
            key=lambda log: log.log_date,
        )

    async def get_logs_for_habits(self, habit_ids, window_start, window_end):
        self.calls.append("get_logs_for_habits")
        wanted = set(habit_ids)
        return sorted(
            (
                log
                for (hid, day), log in self.logs.items()
                if hid in wanted and window_start <= day <= window_end
            ),
            key=lambda log: (str(log.habit_id), log.log_date),
        )

    # ── Social Graph ──────────────────────────────────────────────────────

    async def follow_user(self, follower_id, following_id):
        self.calls.append("follow_user")
        self._user(follower_id)
        self._user(following_id)
        self.edges.setdefault((follower_id, following_id), self._tick())

    async def unfollow_user(self, follower_id, following_id):
        self.calls.append("unfollow_user")
        self.edges.pop((follower_id, following_id), None)

    async def is_following(self, follower_id, following_id):
        self.calls.append("is_following")
        return (follower_id, following_id) in self.edges

    async def get_follower_count(self, user_id):
        self.calls.append("get_follower_count")
        return sum(1 for _, followee in self.edges if followee == user_id)

    async def get_following_count(self, user_id):
        self.calls.append("get_following_count")
        return sum(1 for follower, _ in self.edges if follower == user_id)

    async def get_followers(self, user_id):
        self.calls.append("get_followers")
        edges = sorted(
            ((at, follower) for (follower, followee), at in self.edges.items() if followee == user_id),
            reverse=True,
        )
        return [self.users[follower].to_public() for _, follower in edges]

    async def get_following(self, user_id):
        self.calls.append("get_following")
        edges = sorted(
            ((at, followee) for (follower, followee), at in self.edges.items() if follower == user_id),
            reverse=True,
        )
        return [self.users[followee].to_public() for _, followee in edges]

    # ── Feeds ─────────────────────────────────────────────────────────────

    def _with_positive_logs(self, habit):
        logs = sorted(
            (log for (hid, _), log in self.logs.items() if hid == habit.id and log.value > 0),
            key=lambda log: log.log_date,
        )
        return domain.HabitWithLogs.from_habit(habit, logs)

    async def get_leaderboard(self, limit):
        self.calls.append("get_leaderboard")
        totals = Counter()
        for (habit_id, _), log in self.logs.items():
            if log.value > 0:
                totals[self.habits[habit_id].user_id] += 1
        ranked = sorted(totals.items(), key=lambda item: (-item[1], self.users[item[0]].username))
        habits_by_user = defaultdict(list)
        for habit in sorted(self.habits.values(), key=lambda h: h.created_at, reverse=True):
            habits_by_user[habit.user_id].append(self._with_positive_logs(habit))
        return [
            domain.LeaderboardEntry(
                user=self.users[user_id].to_public(),
                total_logged_days=total,
                habits=habits_by_user[user_id],
            )
            for user_id, total in ranked[:limit]
        ]

    async def get_explore_page(self, limit):
        self.calls.append("get_explore_page")
        latest: Dict[uuid.UUID, domain.HabitLog] = {}
        for (habit_id, _), log in self.logs.items():
            if log.value <= 0:
                continue
            owner = self.habits[habit_id].user_id
            if owner not in latest or log.updated_at > latest[owner].updated_at:
                latest[owner] = log
        picks = sorted(latest.items(), key=lambda item: item[1].updated_at, reverse=True)
        return [
            domain.ExploreEntry(
                user=self.users[user_id].to_public(),
                habit=self._with_positive_logs(self.habits[log.habit_id]),
            )
            for user_id, log in picks[:limit]
        ]


def make_user(username: str, email: Optional[str] = None, hashed_password: str = "x") -> domain.User:
    return domain.User(
        id=uuid.uuid4(),
        username=username,
        email=email or f"{username}@example.com",
        hashed_password=hashed_password,
    )


def make_habit(owner_id: uuid.UUID, name: str = "Read", is_boolean: bool = True) -> domain.Habit:
    return domain.Habit(id=uuid.uuid4(), user_id=owner_id, name=name, color_hue=120, is_boolean=is_boolean)


def make_log(habit_id: uuid.UUID, log_date: date, value: int = 1) -> domain.HabitLog:
    return domain.HabitLog(id=uuid.uuid4(), habit_id=habit_id, log_date=log_date, value=value)


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def mock_gateway() -> AsyncMock:
    """Every gateway coroutine is an AsyncMock; configure per test."""
    return AsyncMock(spec=PersistenceGateway)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "avatars"), "/uploads/avatars")


@pytest.fixture
def png_bytes() -> bytes:
    """A complete 1x1 PNG."""
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
    )


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Minimal JPEG: SOI + JFIF APP0 header + EOI."""
    return (
        b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
        b"\xff\xd9"
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/app.db",
        storage_root=str(tmp_path / "avatars"),
        jwt_secret="test-secret-not-real-but-long-enough-for-hs256",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def sqlite_gateway(test_settings):
    """
    SQLAlchemyGateway over a fresh SQLite file.

    A file (not :memory:) so every pooled connection sees the same database.
    """
    engine = create_engine(test_settings)
    await create_schema(engine)
    yield SQLAlchemyGateway(create_session_factory(engine))
    await engine.dispose()


@pytest_asyncio.fixture
async def test_client(test_settings, gateway, blob_store):
    """
    HTTPX AsyncClient talking to an app built around the in-memory gateway.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from peakstreak.main import create_app

    app = create_app(settings=test_settings, gateway=gateway, blob_store=blob_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
