"""
Pydantic schemas for the weekly reading leaderboard.
"""
from pydantic import Field
from datetime import date
from typing import List, Optional

from .common import CamelModel


class WeekRange(CamelModel):
    start: date
    end: date
    settlement_time: str
    is_settled: bool = False


class LeaderboardUser(CamelModel):
    id: int
    username: str
    avatar: Optional[str] = None


class MyRanking(CamelModel):
    rank: int
    duration: int
    rank_change: int = 0
    reading_days: int = 0


class LeaderboardEntry(CamelModel):
    rank: int = Field(..., ge=1)
    user: LeaderboardUser
    duration: int
    reading_days: int = 0
    books_read: int = 0
    rank_change: int = Field(0, description="Positive means the user moved up")
    likes_count: int = 0
    is_liked: bool = False


class LeaderboardResponse(CamelModel):
    week_range: WeekRange
    my_ranking: Optional[MyRanking] = None
    entries: List[LeaderboardEntry]
    total_participants: int


class LikeResponse(CamelModel):
    success: bool
