"""
PeakStreak Backend: Pydantic Request/Response Schemas
======================================================

What:  The API contract: request bodies FastAPI validates on the way in and
       the envelopes it serializes on the way out.
Why:   Input rules (username shape, password length, hue range) are checked
       before any service code runs; a failing body is a 422 with field
       details.

Design Decision:
    Read responses reuse the domain entities (`User`, `HabitWithLogs`,
    `ProfileData`, ...) directly. The password hash is excluded from every
    dump at the entity level, so there is no second "safe" copy to keep in
    sync. Only shapes that exist purely for HTTP live here.
"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from peakstreak.domain import User

# bcrypt only looks at the first 72 bytes; longer passwords are refused
# rather than silently truncated.
PASSWORD_PATTERN = r"^[\x20-\x7E]+$"
USERNAME_PATTERN = r"^[A-Za-z0-9]+$"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SignUpRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72, pattern=PASSWORD_PATTERN)


class LoginRequest(BaseModel):
    """`identifier` is either the username or the email address."""

    identifier: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class CreateHabitRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color_hue: int = Field(default=0, ge=0, le=360)
    is_boolean: bool = Field(default=True, description="Done/not-done habit (true) or counted habit (false)")


class UpdateHabitRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color_hue: int = Field(ge=0, le=360)


class LogHabitRequest(BaseModel):
    log_date: dt.date = Field(description="Calendar day being logged (YYYY-MM-DD)")
    value: int = Field(default=1, ge=0, description="1/0 for boolean habits, a count otherwise")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class AvatarResponse(BaseModel):
    avatar_url: str


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-2xx response.

    Example:
        {
            "error": "access_denied",
            "message": "user does not have permission to access this resource",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str
    database: str = Field(description="Database connectivity: connected or disconnected")
    uptime_seconds: float
