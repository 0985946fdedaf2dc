"""
PeakStreak Backend: User & Profile Routes
==========================================

What:  The caller's own account (/api/me), user search, public profiles and
       the follow graph.

Route ordering:
    /api/users/search is declared before /api/users/{username}, otherwise
    "search" would be taken for a username.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from peakstreak.domain import ProfileData, PublicUser, User
from peakstreak.routes.dependencies import (
    get_account_service,
    get_current_user_id,
    get_optional_user_id,
    get_profile_service,
    get_social_service,
)
from peakstreak.schemas import AvatarResponse, ErrorResponse
from peakstreak.services import AccountService, ProfileService, SocialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


# ── Current User ──────────────────────────────────────────────────────────


@router.get("/me", response_model=User, summary="The authenticated user")
async def get_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    accounts: AccountService = Depends(get_account_service),
) -> User:
    return await accounts.get_user_by_id(user_id)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT, summary="Delete the authenticated account")
async def delete_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    accounts: AccountService = Depends(get_account_service),
) -> Response:
    await accounts.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/me/avatar",
    response_model=AvatarResponse,
    responses={400: {"description": "Not a PNG/JPEG or too large", "model": ErrorResponse}},
    summary="Replace the avatar image",
)
async def update_avatar(
    avatar: UploadFile = File(..., description="PNG or JPEG, at most 2MB"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    accounts: AccountService = Depends(get_account_service),
) -> AvatarResponse:
    # Read one byte past the limit: enough to reject oversize uploads
    # without buffering the whole body.
    content = await avatar.read(accounts.max_avatar_size + 1)
    locator = await accounts.update_avatar(user_id, avatar.filename or "", content)
    return AvatarResponse(avatar_url=locator)


# ── Other Users ───────────────────────────────────────────────────────────


@router.get("/users/search", response_model=List[PublicUser], summary="Search users by username")
async def search_users(
    q: str = Query(default="", max_length=50, description="Substring of the username"),
    accounts: AccountService = Depends(get_account_service),
) -> List[PublicUser]:
    return await accounts.search_users(q)


@router.get(
    "/users/{username}",
    response_model=ProfileData,
    responses={404: {"description": "Unknown username", "model": ErrorResponse}},
    summary="Profile page data",
    description=(
        "The user, their habits with the last 90 days of logs, follower and "
        "following counts, and whether the caller follows them. Works without "
        "a token; is_owner and is_following are then false."
    ),
)
async def get_profile(
    username: str,
    viewer_id: Optional[uuid.UUID] = Depends(get_optional_user_id),
    profiles: ProfileService = Depends(get_profile_service),
) -> ProfileData:
    return await profiles.get_profile_data(username, viewer_id)


@router.get("/users/{username}/followers", response_model=List[PublicUser])
async def get_followers(
    username: str,
    social: SocialService = Depends(get_social_service),
) -> List[PublicUser]:
    return await social.get_followers(username)


@router.get("/users/{username}/following", response_model=List[PublicUser])
async def get_following(
    username: str,
    social: SocialService = Depends(get_social_service),
) -> List[PublicUser]:
    return await social.get_following(username)


@router.post(
    "/users/{username}/follow",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"description": "Tried to follow yourself", "model": ErrorResponse}},
)
async def follow_user(
    username: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    social: SocialService = Depends(get_social_service),
) -> Response:
    await social.follow_user(user_id, username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/users/{username}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    username: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    social: SocialService = Depends(get_social_service),
) -> Response:
    await social.unfollow_user(user_id, username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
