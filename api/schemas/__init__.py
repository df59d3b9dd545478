"""
Pydantic schemas for request/response validation.
"""
from .common import CamelModel, DataResponse, ErrorResponse
from .milestone import MilestoneAchieved, MilestoneResponse
from .session import (
    BookType,
    StartSessionRequest,
    StartSessionResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    PauseResumeResponse,
    EndSessionRequest,
    EndSessionResponse,
    ActiveSessionResponse,
    TodayDurationResponse,
    AnnotationKind,
    AnnotationRequest,
    AnnotationResponse,
)
from .leaderboard import LeaderboardResponse, LeaderboardEntry, LikeResponse
from .stats import ReadingStats, WeekStats, MonthStats, YearStats, TotalStats, CalendarStats

__all__ = [
    # Common
    "CamelModel",
    "DataResponse",
    "ErrorResponse",
    # Milestone schemas
    "MilestoneAchieved",
    "MilestoneResponse",
    # Session schemas
    "BookType",
    "StartSessionRequest",
    "StartSessionResponse",
    "HeartbeatRequest",
    "HeartbeatResponse",
    "PauseResumeResponse",
    "EndSessionRequest",
    "EndSessionResponse",
    "ActiveSessionResponse",
    "TodayDurationResponse",
    "AnnotationKind",
    "AnnotationRequest",
    "AnnotationResponse",
    # Leaderboard schemas
    "LeaderboardResponse",
    "LeaderboardEntry",
    "LikeResponse",
    # Stats schemas
    "ReadingStats",
    "WeekStats",
    "MonthStats",
    "YearStats",
    "TotalStats",
    "CalendarStats",
]
