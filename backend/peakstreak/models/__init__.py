"""
ORM models. Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and `create_schema()` rely on that).
"""

from peakstreak.models.follow import Follower
from peakstreak.models.habit import Habit, HabitLog
from peakstreak.models.user import User

__all__ = ["Follower", "Habit", "HabitLog", "User"]
