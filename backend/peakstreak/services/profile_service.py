"""
PeakStreak Backend: Profile Aggregator
=======================================

What:  Builds the composite profile view (user, habits with recent logs,
       follower/following counts, relationship to the viewer).
Why:   The profile page needs five reads; four of them are independent of
       each other and run concurrently.
How:   Fan-out / join-all:

    resolve username ──▶ ┌─ (a) habits + logs in the recent window ─┐
       (sequential)      ├─ (b) follower count                      ├──▶ barrier ──▶ ProfileData
                         ├─ (c) following count                     │   (gather,
                         └─ (d) is_following (visitors only)       ─┘    return_exceptions)

Failure semantics:
    - Resolution fails → that error, nothing is launched.
    - Any sub-read fails → the first failure in (a)→(d) order is raised,
      its message prefixed with the sub-read's name and its kind kept.
      Siblings are NOT cancelled; every read finishes before the error
      surfaces. No partial ProfileData is ever returned.
    - A sub-read that ended cancelled surfaces as CANCELLED; a timed-out one
      as DEADLINE_EXCEEDED.
    - Cancelling the caller cancels the in-flight reads and keeps
      propagating as cancellation.

Consistency:
    The reads are not transactionally linked; counts and habits may reflect
    slightly different moments. ProfileData is never cached.
"""

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Any, Awaitable, List, Optional, Tuple

from peakstreak.domain import ProfileData
from peakstreak.exceptions import classify_error, translate_errors
from peakstreak.gateway.base import PersistenceGateway
from peakstreak.services.habit_service import HabitService, utc_today

logger = logging.getLogger(__name__)


async def _false() -> bool:
    return False


class ProfileService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        habit_service: HabitService,
        log_window_days: int = 90,
    ):
        self._gateway = gateway
        self._habits = habit_service
        self.log_window_days = log_window_days

    async def get_profile_data(self, username: str, viewer_id: Optional[uuid.UUID] = None) -> ProfileData:
        with translate_errors("get user"):
            user = await self._gateway.get_user_by_username(username)

        window_end = utc_today()
        window_start = window_end - timedelta(days=self.log_window_days)

        # The owner never asks "do I follow myself?"; anonymous viewers follow nobody.
        check_following = viewer_id is not None and viewer_id != user.id

        reads: List[Tuple[str, Awaitable[Any]]] = [
            ("failed to get habits", self._habits.get_all_habits_with_logs(user.id, window_start, window_end)),
            ("failed to get followers count", self._gateway.get_follower_count(user.id)),
            ("failed to get following count", self._gateway.get_following_count(user.id)),
            (
                "failed to check following status",
                self._gateway.is_following(viewer_id, user.id) if check_following else _false(),
            ),
        ]

        results = await asyncio.gather(*(read for _, read in reads), return_exceptions=True)

        for (label, _), result in zip(reads, results):
            if isinstance(result, BaseException):
                err = classify_error(result, label).wrap(label)
                logger.warning("Profile for %s failed: %s", username, err.message)
                raise err

        habits, followers_count, following_count, is_following = results
        return ProfileData(
            user=user.sanitized(),
            habits=habits,
            is_owner=viewer_id is not None and viewer_id == user.id,
            followers_count=followers_count,
            following_count=following_count,
            is_following=is_following,
        )
