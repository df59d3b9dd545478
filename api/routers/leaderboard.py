"""
Social endpoints - weekly reading leaderboard and likes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import Optional

from database import get_db
from models import User
from schemas import DataResponse, LeaderboardResponse, LikeResponse
from services.leaderboard_service import LeaderboardService
from utils.dependencies import get_current_user, get_request_time

router = APIRouter()


@router.get("/leaderboard", response_model=DataResponse[LeaderboardResponse])
async def get_leaderboard(
    type: str = Query(LeaderboardService.SCOPE_FRIENDS, description="'friends' or 'all'"),
    week: Optional[date] = Query(None, description="Any day of the week (YYYY-MM-DD), defaults to this week"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """
    Get the weekly reading leaderboard.

    - **type**: 'friends' (people you follow and you) or 'all'
    - Settled weeks come from stored entries, the current week is computed live
    - Entries with the same reading time share a rank
    """
    leaderboard = LeaderboardService.get_leaderboard(db, current_user.id, week or now.date(), type)
    return {"data": leaderboard}


@router.post("/leaderboard/{target_user_id}/like", response_model=DataResponse[LikeResponse])
async def like_user(
    target_user_id: int,
    week: Optional[date] = Query(None, description="Any day of the week, defaults to this week"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """Like another reader on a week's leaderboard. Once per user per week."""
    result = LeaderboardService.like_user(db, current_user.id, target_user_id, week or now.date())
    return {"data": result}
