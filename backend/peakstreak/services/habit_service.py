"""
PeakStreak Backend: Habit & Log Rules Engine
=============================================

What:  Ownership-checked habit CRUD, idempotent daily logging and the batched
       habits-with-logs read used by profiles.
Why:   Keeps the rules (who may touch a habit, one log per day) in one place,
       independent of HTTP and of the storage engine.
How:   Talks only to a `PersistenceGateway`. Gateway failures that are not
       already PeakStreakErrors are classified by `translate_errors()`.

Ownership rules:
    update / log / details:  load, NotFound if absent, AccessDenied if the
                             requester is not the owner, then act.
    delete:                  ONE owner-scoped delete at the gateway. A miss
                             is reported as AccessDenied whether the habit is
                             absent or someone else's; the requester learns
                             nothing about other users' habit ids.

Batched read (get_all_habits_with_logs):
    1 query for habits + 1 query for all their logs, regardless of how many
    habits the user has (no N+1).
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List

from peakstreak.domain import Habit, HabitLog, HabitWithLogs
from peakstreak.exceptions import AccessDeniedError, ErrorKind, PeakStreakError, translate_errors
from peakstreak.gateway.base import PersistenceGateway

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class HabitService:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def _load_owned(self, habit_id: uuid.UUID, requester_id: uuid.UUID, operation: str) -> Habit:
        with translate_errors(operation):
            habit = await self._gateway.get_habit_by_id(habit_id)
        if habit.user_id != requester_id:
            logger.info("Denied %s on habit %s for user %s", operation, habit_id, requester_id)
            raise AccessDeniedError(context={"habit_id": str(habit_id), "operation": operation})
        return habit

    async def create_habit(
        self,
        name: str,
        color_hue: int,
        is_boolean: bool,
        owner_id: uuid.UUID,
    ) -> Habit:
        habit = Habit(
            id=uuid.uuid4(),
            user_id=owner_id,
            name=name,
            color_hue=color_hue,
            is_boolean=is_boolean,
        )
        with translate_errors("create habit"):
            created = await self._gateway.create_habit(habit)
        logger.info("Habit %s created for user %s", created.id, owner_id)
        return created

    async def update_habit(
        self,
        habit_id: uuid.UUID,
        name: str,
        color_hue: int,
        requester_id: uuid.UUID,
    ) -> Habit:
        habit = await self._load_owned(habit_id, requester_id, "update habit")
        updated = habit.model_copy(update={"name": name, "color_hue": color_hue})
        with translate_errors("update habit"):
            await self._gateway.update_habit(updated)
        return updated

    async def delete_habit(self, habit_id: uuid.UUID, requester_id: uuid.UUID) -> None:
        try:
            with translate_errors("delete habit"):
                await self._gateway.delete_habit(habit_id, requester_id)
        except PeakStreakError as err:
            if err.kind is ErrorKind.NOT_FOUND:
                raise AccessDeniedError(context={"habit_id": str(habit_id)}) from err
            raise
        logger.info("Habit %s deleted by user %s", habit_id, requester_id)

    async def log_habit(
        self,
        habit_id: uuid.UUID,
        log_date: date,
        value: int,
        requester_id: uuid.UUID,
    ) -> HabitLog:
        """
        Record `value` for `log_date`, replacing any earlier log of that day.

        The value is stored as given; it is not checked against the habit's
        `is_boolean` flag.
        """
        await self._load_owned(habit_id, requester_id, "log habit")
        log = HabitLog(id=uuid.uuid4(), habit_id=habit_id, log_date=log_date, value=value)
        with translate_errors("log habit"):
            return await self._gateway.upsert_habit_log(log)

    async def get_habit_details(
        self,
        habit_id: uuid.UUID,
        requester_id: uuid.UUID,
        window_days: int = 30,
    ) -> HabitWithLogs:
        habit = await self._load_owned(habit_id, requester_id, "get habit details")
        window_end = utc_today()
        window_start = window_end - timedelta(days=window_days)
        with translate_errors("get habit details"):
            logs = await self._gateway.get_habit_logs(habit_id, window_start, window_end)
        return HabitWithLogs.from_habit(habit, logs)

    async def get_all_habits_with_logs(
        self,
        user_id: uuid.UUID,
        window_start: date,
        window_end: date,
    ) -> List[HabitWithLogs]:
        with translate_errors("get habits"):
            habits = await self._gateway.get_habits_by_user_id(user_id)
        if not habits:
            return []

        with translate_errors("get habit logs"):
            logs = await self._gateway.get_logs_for_habits(
                [habit.id for habit in habits], window_start, window_end
            )

        logs_by_habit: Dict[uuid.UUID, List[HabitLog]] = defaultdict(list)
        for log in logs:
            logs_by_habit[log.habit_id].append(log)
        for habit_logs in logs_by_habit.values():
            habit_logs.sort(key=lambda log: log.log_date)

        return [HabitWithLogs.from_habit(habit, logs_by_habit.get(habit.id, [])) for habit in habits]
