"""
PeakStreak Backend: Authentication Routes
==========================================

What:  POST /api/auth/signup and POST /api/auth/login.
How:   Both return a bearer token plus the sanitized user, so the client is
       signed in straight after sign-up.
"""

import logging

from fastapi import APIRouter, Depends, status

from peakstreak.routes.dependencies import get_account_service, get_token_codec
from peakstreak.schemas import ErrorResponse, LoginRequest, SignUpRequest, TokenResponse
from peakstreak.security import TokenCodec
from peakstreak.services import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Username or email taken", "model": ErrorResponse}},
    summary="Create an account",
)
async def signup(
    body: SignUpRequest,
    accounts: AccountService = Depends(get_account_service),
    codec: TokenCodec = Depends(get_token_codec),
) -> TokenResponse:
    user = await accounts.create_user(body.username, body.email, body.password)
    return TokenResponse(access_token=codec.create_access_token(user.id), user=user)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Log in with username or email",
)
async def login(
    body: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
    codec: TokenCodec = Depends(get_token_codec),
) -> TokenResponse:
    user = await accounts.login_user(body.identifier, body.password)
    logger.info("User %s logged in", user.id)
    return TokenResponse(access_token=codec.create_access_token(user.id), user=user)
