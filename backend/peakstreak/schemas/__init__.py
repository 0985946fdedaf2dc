"""HTTP request and response models for the PeakStreak API."""

from peakstreak.schemas.api import (
    PASSWORD_PATTERN,
    USERNAME_PATTERN,
    AvatarResponse,
    CreateHabitRequest,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    LogHabitRequest,
    SignUpRequest,
    TokenResponse,
    UpdateHabitRequest,
)

__all__ = [
    "PASSWORD_PATTERN",
    "USERNAME_PATTERN",
    "AvatarResponse",
    "CreateHabitRequest",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "LogHabitRequest",
    "SignUpRequest",
    "TokenResponse",
    "UpdateHabitRequest",
]
