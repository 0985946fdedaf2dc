"""
PeakStreak Backend: Social Graph & Feeds
=========================================

What:  Follow/unfollow, follower and following lists, leaderboard and
       explore page.
How:   Usernames are resolved to ids first (NotFound for unknown names);
       the edge operations themselves are idempotent at the gateway.
"""

import logging
import uuid
from typing import List

from peakstreak.domain import ExploreEntry, LeaderboardEntry, PublicUser
from peakstreak.exceptions import CannotFollowSelfError, translate_errors
from peakstreak.gateway.base import PersistenceGateway

logger = logging.getLogger(__name__)


class SocialService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        leaderboard_limit: int = 50,
        explore_limit: int = 50,
    ):
        self._gateway = gateway
        self.leaderboard_limit = leaderboard_limit
        self.explore_limit = explore_limit

    async def _resolve_id(self, username: str) -> uuid.UUID:
        with translate_errors("get user"):
            user = await self._gateway.get_user_by_username(username)
        return user.id

    async def follow_user(self, follower_id: uuid.UUID, target_username: str) -> None:
        target_id = await self._resolve_id(target_username)
        if target_id == follower_id:
            raise CannotFollowSelfError(context={"user_id": str(follower_id)})
        with translate_errors("follow user"):
            await self._gateway.follow_user(follower_id, target_id)
        logger.info("User %s follows %s", follower_id, target_id)

    async def unfollow_user(self, follower_id: uuid.UUID, target_username: str) -> None:
        target_id = await self._resolve_id(target_username)
        with translate_errors("unfollow user"):
            await self._gateway.unfollow_user(follower_id, target_id)

    async def get_followers(self, username: str) -> List[PublicUser]:
        user_id = await self._resolve_id(username)
        with translate_errors("get followers"):
            return await self._gateway.get_followers(user_id)

    async def get_following(self, username: str) -> List[PublicUser]:
        user_id = await self._resolve_id(username)
        with translate_errors("get following"):
            return await self._gateway.get_following(user_id)

    async def get_leaderboard(self) -> List[LeaderboardEntry]:
        with translate_errors("get leaderboard"):
            return await self._gateway.get_leaderboard(self.leaderboard_limit)

    async def get_explore_page(self) -> List[ExploreEntry]:
        with translate_errors("get explore page"):
            return await self._gateway.get_explore_page(self.explore_limit)
