"""
PeakStreak Backend: Leaderboard & Explore Routes
=================================================

What:  Public feeds. No token needed.
"""

from typing import List

from fastapi import APIRouter, Depends

from peakstreak.domain import ExploreEntry, LeaderboardEntry
from peakstreak.routes.dependencies import get_social_service
from peakstreak.services import SocialService

router = APIRouter(prefix="/api", tags=["Feeds"])


@router.get(
    "/leaderboard",
    response_model=List[LeaderboardEntry],
    summary="Users ranked by logged days",
)
async def get_leaderboard(social: SocialService = Depends(get_social_service)) -> List[LeaderboardEntry]:
    return await social.get_leaderboard()


@router.get(
    "/explore",
    response_model=List[ExploreEntry],
    summary="Each user's most recently logged habit",
)
async def get_explore_page(social: SocialService = Depends(get_social_service)) -> List[ExploreEntry]:
    return await social.get_explore_page()
