"""
Statistics endpoints - reading stats by period and milestones.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import List, Optional

from config import settings
from database import get_db
from models import User
from schemas import DataResponse, MilestoneResponse, ReadingStats
from services.stats_service import StatsService
from utils.dependencies import get_current_user, get_request_time
from utils.exceptions import ReadingValidationError

router = APIRouter()

DIMENSIONS = ("week", "month", "year", "total", "calendar")


@router.get("/reading-stats", response_model=DataResponse[ReadingStats])
async def get_reading_stats(
    dimension: str = Query("week", description="week, month, year, total or calendar"),
    date_param: Optional[date] = Query(None, alias="date", description="Any day of the week (YYYY-MM-DD)"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """
    Get reading statistics for the current user.

    - **week**: totals for the week containing `date` (default: this week)
    - **month** / **calendar**: `year` and `month` (default: current month)
    - **year**: `year` (default: current year)
    - **total**: all-time profile totals
    """
    if dimension not in DIMENSIONS:
        raise ReadingValidationError(f"Invalid dimension. Must be one of: {', '.join(DIMENSIONS)}")

    today = now.date()
    year = year or today.year
    month = month or today.month

    if dimension == "week":
        stats = StatsService.get_week_stats(db, current_user.id, date_param or today)
    elif dimension == "month":
        stats = StatsService.get_month_stats(db, current_user.id, year, month)
    elif dimension == "year":
        stats = StatsService.get_year_stats(db, current_user.id, year)
    elif dimension == "calendar":
        stats = StatsService.get_calendar_stats(db, current_user.id, year, month)
    else:
        stats = StatsService.get_total_stats(current_user)

    return {"data": stats}


@router.get("/milestones", response_model=DataResponse[List[MilestoneResponse]])
async def get_milestones(
    limit: int = Query(settings.MILESTONES_DEFAULT_LIMIT, ge=1, le=100),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get achieved milestones, newest first."""
    milestones = StatsService.get_milestones(db, current_user.id, limit, year)
    return {"data": [MilestoneResponse.from_model(m) for m in milestones]}
