"""
PeakStreak Backend: Habit Routes
=================================

What:  Create, read, update and delete habits and record daily logs.
How:   Every route requires a bearer token; ownership is enforced by
       HabitService, not here.

Status codes:
    403  the habit belongs to someone else (for DELETE: or does not exist)
    404  the habit does not exist (GET / PUT / log)
"""

import uuid

from fastapi import APIRouter, Depends, Response, status

from peakstreak.config import Settings
from peakstreak.domain import Habit, HabitLog, HabitWithLogs
from peakstreak.routes.dependencies import get_app_settings, get_current_user_id, get_habit_service
from peakstreak.schemas import CreateHabitRequest, ErrorResponse, LogHabitRequest, UpdateHabitRequest
from peakstreak.services import HabitService

router = APIRouter(prefix="/api/habits", tags=["Habits"])

OWNERSHIP_RESPONSES = {
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "Habit not found", "model": ErrorResponse},
}


@router.post("", response_model=Habit, status_code=status.HTTP_201_CREATED)
async def create_habit(
    body: CreateHabitRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
) -> Habit:
    return await habits.create_habit(body.name, body.color_hue, body.is_boolean, user_id)


@router.get("/{habit_id}", response_model=HabitWithLogs, responses=OWNERSHIP_RESPONSES)
async def get_habit_details(
    habit_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
    settings: Settings = Depends(get_app_settings),
) -> HabitWithLogs:
    return await habits.get_habit_details(habit_id, user_id, window_days=settings.habit_details_window_days)


@router.put("/{habit_id}", response_model=Habit, responses=OWNERSHIP_RESPONSES)
async def update_habit(
    habit_id: uuid.UUID,
    body: UpdateHabitRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
) -> Habit:
    return await habits.update_habit(habit_id, body.name, body.color_hue, user_id)


@router.delete("/{habit_id}", status_code=status.HTTP_204_NO_CONTENT, responses=OWNERSHIP_RESPONSES)
async def delete_habit(
    habit_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
) -> Response:
    await habits.delete_habit(habit_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{habit_id}/logs", response_model=HabitLog, responses=OWNERSHIP_RESPONSES)
async def log_habit(
    habit_id: uuid.UUID,
    body: LogHabitRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
) -> HabitLog:
    return await habits.log_habit(habit_id, body.log_date, body.value, user_id)
