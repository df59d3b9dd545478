"""
SQLAlchemy database models.
"""
from .user import User
from .catalog import CatalogItem
from .session import ReadingSession
from .daily_stat import DailyReadingStat
from .milestone import ReadingMilestone
from .leaderboard import WeeklyLeaderboardEntry, LeaderboardSettlement, LeaderboardLike
from .follow import UserFollow

__all__ = [
    "User",
    "CatalogItem",
    "ReadingSession",
    "DailyReadingStat",
    "ReadingMilestone",
    "WeeklyLeaderboardEntry",
    "LeaderboardSettlement",
    "LeaderboardLike",
    "UserFollow",
]
