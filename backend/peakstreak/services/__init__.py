"""
PeakStreak Backend: Services Layer
===================================

What:  Business rules sitting between the routes (HTTP) and the persistence
       gateway.
How:   Each service is constructed once per app with its collaborators
       (gateway, hasher, blob store) and stored on `app.state`.

Service Inventory:
    - HabitService:   habit CRUD with ownership checks, idempotent logging
    - ProfileService: concurrent profile aggregation
    - AccountService: sign-up, login, lookup, avatar, account deletion
    - SocialService:  follow graph, leaderboard, explore page
"""

from peakstreak.services.account_service import AccountService
from peakstreak.services.habit_service import HabitService
from peakstreak.services.profile_service import ProfileService
from peakstreak.services.social_service import SocialService

__all__ = ["AccountService", "HabitService", "ProfileService", "SocialService"]
