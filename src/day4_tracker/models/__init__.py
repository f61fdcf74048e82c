from day4_tracker.models.goal import Goal, GoalRecord
from day4_tracker.models.user import User
from day4_tracker.models.user_setting import UserSetting

__all__ = [
    "User",
    "Goal",
    "GoalRecord",
    "UserSetting",
]
