"""
PeakStreak Backend: Route Dependencies
=======================================

What:  FastAPI dependencies that hand route handlers their services and the
       caller's identity.
How:   Services are built once by `create_app()` and live on `app.state`;
       these functions just read them back, so tests can build an app around
       any gateway without patching module globals.

Authentication:
    get_current_user_id   Bearer token required, 401 otherwise.
    get_optional_user_id  Missing or invalid token → anonymous (None).
"""

import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from peakstreak.config import Settings
from peakstreak.exceptions import UnauthenticatedError
from peakstreak.security import TokenCodec
from peakstreak.services import AccountService, HabitService, ProfileService, SocialService

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_habit_service(request: Request) -> HabitService:
    return request.app.state.habit_service


def get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def get_social_service(request: Request) -> SocialService:
    return request.app.state.social_service


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> uuid.UUID:
    if credentials is None:
        raise UnauthenticatedError(message="authorization header required")
    return codec.decode_access_token(credentials.credentials)


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> Optional[uuid.UUID]:
    if credentials is None:
        return None
    try:
        return codec.decode_access_token(credentials.credentials)
    except UnauthenticatedError:
        return None
