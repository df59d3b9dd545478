"""
Service for completing interrupted session cascades and rebuilding
aggregates from session history.

Session rows are the source of truth; everything here can be re-run safely.
"""
from typing import Dict, Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
import logging

from models.daily_stat import DailyReadingStat
from models.session import ReadingSession
from models.user import User
from services.aggregation_service import AggregationService
from services.session_service import SessionService
from services.streak_service import StreakService

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service for reconciling sessions with daily and profile aggregates."""

    @staticmethod
    def apply_pending(db: Session, now: Optional[datetime] = None, limit: int = 500) -> int:
        """
        Finish the end-of-session work for ended sessions that did not
        complete it: contribute any unaggregated duration and run the
        streak/milestone cascade.

        Returns:
            Number of sessions processed successfully
        """
        if now is None:
            now = datetime.utcnow()

        pending = db.execute(
            select(ReadingSession)
            .where(
                ReadingSession.is_active.is_(False),
                or_(
                    ReadingSession.stats_applied.is_(False),
                    ReadingSession.aggregated_seconds < ReadingSession.duration_seconds,
                ),
            )
            .order_by(ReadingSession.end_time.asc())
            .limit(limit)
        ).scalars().all()

        processed = 0
        for session in pending:
            try:
                SessionService.contribute_pending(db, session, session.end_time or now)
                db.commit()
                SessionService.apply_session_stats(db, session, now)
                db.commit()
                processed += 1
            except SQLAlchemyError:
                db.rollback()
                logger.exception(f"Reconciliation failed for session {session.id}")

        if pending:
            logger.info(f"Reconciled {processed}/{len(pending)} pending sessions")
        return processed

    @staticmethod
    def rebuild_user(db: Session, user_id: int) -> User:
        """
        Recompute a user's daily duration totals and reading profile from
        session history. Each session is attributed to its end-time date
        (start date for sessions still active).
        """
        user = StreakService.lock_user(db, user_id)

        sessions = db.execute(
            select(ReadingSession).where(ReadingSession.user_id == user_id)
        ).scalars().all()

        totals: Dict[date, int] = {}
        for session in sessions:
            day = (session.end_time or session.start_time).date()
            totals[day] = totals.get(day, 0) + (session.duration_seconds or 0)

        # Zero every day, then write rebuilt totals
        db.execute(
            update(DailyReadingStat)
            .where(DailyReadingStat.user_id == user_id)
            .values(total_duration_seconds=0)
            .execution_options(synchronize_session=False)
        )
        for day, seconds in totals.items():
            AggregationService.contribute(db, user_id, day, seconds)

        db.execute(
            update(ReadingSession)
            .where(ReadingSession.user_id == user_id)
            .values(aggregated_seconds=ReadingSession.duration_seconds)
            .execution_options(synchronize_session=False)
        )
        db.execute(
            update(ReadingSession)
            .where(ReadingSession.user_id == user_id, ReadingSession.is_active.is_(False))
            .values(stats_applied=True)
            .execution_options(synchronize_session=False)
        )

        ended = [s for s in sessions if not s.is_active]
        reading_days = sorted({s.end_time.date() for s in ended if (s.duration_seconds or 0) > 0})
        current, longest = StreakService.compute_streaks(reading_days)

        user.total_reading_duration = sum(s.duration_seconds or 0 for s in ended)
        user.total_reading_days = len(reading_days)
        user.current_streak_days = current
        user.max_streak_days = longest
        user.last_reading_date = reading_days[-1] if reading_days else None
        user.books_read_count = len({(s.book_type, s.book_id) for s in ended})
        user.books_finished_count = len({(s.book_type, s.book_id) for s in ended if s.finished_book})

        db.commit()
        db.refresh(user)

        logger.info(
            f"Rebuilt stats for user {user_id}: duration={user.total_reading_duration}s, "
            f"days={user.total_reading_days}, streak={user.current_streak_days}/{user.max_streak_days}"
        )
        return user
