"""
Read-only reading statistics built from daily aggregates and milestones.

Missing data always yields zeroed payloads, never errors.
"""
from typing import Any, Dict, List, Optional
from datetime import date, datetime, timedelta
import calendar
from sqlalchemy.orm import Session
from sqlalchemy import select

from models.daily_stat import DailyReadingStat
from models.milestone import ReadingMilestone
from models.user import User
from services.aggregation_service import AggregationService
from services.leaderboard_service import LeaderboardService


DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def comparison_change(current: int, previous: int) -> float:
    """Percentage change vs. the previous period, 0 when there is no baseline."""
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def month_bounds(year: int, month: int) -> tuple:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_month(year: int, month: int) -> tuple:
    return (year - 1, 12) if month == 1 else (year, month - 1)


class StatsService:
    """Service for week/month/year/total/calendar reading statistics."""

    @staticmethod
    def _daily_rows(db: Session, user_id: int, start: date, end: date) -> List[DailyReadingStat]:
        return db.execute(
            select(DailyReadingStat)
            .where(
                DailyReadingStat.user_id == user_id,
                DailyReadingStat.date >= start,
                DailyReadingStat.date <= end,
            )
            .order_by(DailyReadingStat.date.asc())
        ).scalars().all()

    @staticmethod
    def get_week_stats(db: Session, user_id: int, reference: date) -> Dict[str, Any]:
        week_start, week_end = LeaderboardService.week_bounds(reference)
        rows = StatsService._daily_rows(db, user_id, week_start, week_end)
        by_date = {row.date: row for row in rows}

        total = sum(row.total_duration_seconds or 0 for row in rows)
        previous_total = AggregationService.get_range_total(
            db, user_id, week_start - timedelta(days=7), week_end - timedelta(days=7)
        )

        books = set()
        for row in rows:
            books.update(key for key, seconds in (row.book_durations or {}).items() if seconds > 0)

        duration_by_day = []
        for offset in range(7):
            day = week_start + timedelta(days=offset)
            row = by_date.get(day)
            duration_by_day.append({
                "date": day,
                "duration": row.total_duration_seconds if row else 0,
                "day_of_week": DAY_NAMES[day.weekday()],
            })

        return {
            "dimension": "week",
            "date_range": {"start": week_start, "end": week_end},
            "summary": {
                "total_duration": total,
                "daily_average": total // 7,
                "comparison_change": comparison_change(total, previous_total),
                "friend_ranking": LeaderboardService.get_friend_rank(db, user_id, week_start),
            },
            "reading_records": {
                "books_read": len(books),
                "reading_days": sum(1 for row in rows if (row.total_duration_seconds or 0) > 0),
                "notes_count": sum(row.notes_created or 0 for row in rows),
                "highlights_count": sum(row.highlights_created or 0 for row in rows),
            },
            "duration_by_day": duration_by_day,
        }

    @staticmethod
    def get_month_stats(db: Session, user_id: int, year: int, month: int) -> Dict[str, Any]:
        start, end = month_bounds(year, month)
        rows = StatsService._daily_rows(db, user_id, start, end)
        total = sum(row.total_duration_seconds or 0 for row in rows)

        prev_start, prev_end = month_bounds(*previous_month(year, month))
        previous_total = AggregationService.get_range_total(db, user_id, prev_start, prev_end)

        return {
            "dimension": "month",
            "date_range": {"start": start, "end": end},
            "summary": {
                "total_duration": total,
                "daily_average": total // end.day,
                "comparison_change": comparison_change(total, previous_total),
                "reading_days": sum(1 for row in rows if (row.total_duration_seconds or 0) > 0),
            },
            "duration_by_day": [
                {
                    "date": row.date,
                    "duration": row.total_duration_seconds or 0,
                    "day_of_week": DAY_NAMES[row.date.weekday()],
                }
                for row in rows
            ],
        }

    @staticmethod
    def get_year_stats(db: Session, user_id: int, year: int) -> Dict[str, Any]:
        rows = StatsService._daily_rows(db, user_id, date(year, 1, 1), date(year, 12, 31))

        months = [{"month": m, "duration": 0, "reading_days": 0} for m in range(1, 13)]
        for row in rows:
            bucket = months[row.date.month - 1]
            bucket["duration"] += row.total_duration_seconds or 0
            if (row.total_duration_seconds or 0) > 0:
                bucket["reading_days"] += 1

        total = sum(m["duration"] for m in months)
        previous_total = AggregationService.get_range_total(
            db, user_id, date(year - 1, 1, 1), date(year - 1, 12, 31)
        )

        return {
            "dimension": "year",
            "year": year,
            "summary": {
                "total_duration": total,
                "monthly_average": total // 12,
                "total_reading_days": sum(m["reading_days"] for m in months),
                "comparison_change": comparison_change(total, previous_total),
            },
            "duration_by_month": months,
        }

    @staticmethod
    def get_total_stats(user: User) -> Dict[str, Any]:
        return {
            "dimension": "total",
            "summary": {
                "total_duration": user.total_reading_duration or 0,
                "total_days": user.total_reading_days or 0,
                "current_streak": user.current_streak_days or 0,
                "longest_streak": user.max_streak_days or 0,
                "books_read": user.books_read_count or 0,
                "books_finished": user.books_finished_count or 0,
            },
        }

    @staticmethod
    def get_calendar_stats(db: Session, user_id: int, year: int, month: int) -> Dict[str, Any]:
        start, end = month_bounds(year, month)
        by_date = {row.date: row for row in StatsService._daily_rows(db, user_id, start, end)}

        calendar_days = []
        for day_number in range(1, end.day + 1):
            day = date(year, month, day_number)
            duration = by_date[day].total_duration_seconds if day in by_date else 0
            calendar_days.append({
                "date": day,
                "duration": duration,
                "has_reading": duration > 0,
            })

        milestones = db.execute(
            select(ReadingMilestone)
            .where(
                ReadingMilestone.user_id == user_id,
                ReadingMilestone.achieved_at >= datetime(year, month, 1),
                ReadingMilestone.achieved_at < datetime.combine(end + timedelta(days=1), datetime.min.time()),
            )
            .order_by(ReadingMilestone.achieved_at.desc())
        ).scalars().all()

        return {
            "dimension": "calendar",
            "year": year,
            "month": month,
            "calendar_days": calendar_days,
            "milestones": [
                {
                    "id": m.id,
                    "date": m.achieved_at.date(),
                    "type": m.milestone_type,
                    "title": m.title,
                    "value": m.milestone_value,
                    "book_title": m.book_title,
                }
                for m in milestones
            ],
        }

    @staticmethod
    def get_milestones(db: Session, user_id: int, limit: int, year: Optional[int] = None) -> List[ReadingMilestone]:
        """Achieved milestones, newest first."""
        query = select(ReadingMilestone).where(ReadingMilestone.user_id == user_id)
        if year is not None:
            query = query.where(
                ReadingMilestone.achieved_at >= datetime(year, 1, 1),
                ReadingMilestone.achieved_at < datetime(year + 1, 1, 1),
            )

        return db.execute(
            query.order_by(ReadingMilestone.achieved_at.desc(), ReadingMilestone.id.desc()).limit(limit)
        ).scalars().all()
