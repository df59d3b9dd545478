"""
Service for consecutive-reading-day streaks on the user profile.
"""
from typing import List, Tuple
from datetime import date, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import select
import logging

from models.user import User
from utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class StreakService:
    """Service for updating and recomputing reading streaks."""

    @staticmethod
    def lock_user(db: Session, user_id: int) -> User:
        """Load the user row with a row lock and fresh attribute values."""
        user = db.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def apply_reading_day(db: Session, user_id: int, day: date) -> User:
        """
        Record that the user finished a session on ``day``.

        Same day as last_reading_date: nothing changes.
        The day after: the streak grows by one.
        Any later day (or no previous day): the streak restarts at 1.
        A day earlier than last_reading_date (late reconciliation) is ignored;
        ``ReconciliationService.rebuild_user`` recounts such days.

        Does not commit.
        """
        user = StreakService.lock_user(db, user_id)
        last = user.last_reading_date

        if last is not None and day == last:
            return user

        if last is not None and day < last:
            logger.info(f"Late reading day {day} for user {user_id} (last={last}), streak unchanged")
            return user

        if last is not None and day == last + timedelta(days=1):
            user.current_streak_days = (user.current_streak_days or 0) + 1
        else:
            user.current_streak_days = 1

        user.max_streak_days = max(user.max_streak_days or 0, user.current_streak_days)
        user.total_reading_days = (user.total_reading_days or 0) + 1
        user.last_reading_date = day

        db.flush()

        logger.info(
            f"Streak for user {user_id}: current={user.current_streak_days}, "
            f"max={user.max_streak_days}, days={user.total_reading_days}"
        )
        return user

    @staticmethod
    def compute_streaks(days: List[date]) -> Tuple[int, int]:
        """
        Compute (current, longest) streaks from a set of reading days.

        The current streak is the run ending at the latest reading day.
        """
        ordered = sorted(set(days))
        if not ordered:
            return 0, 0

        longest = 1
        run = 1
        for previous, current in zip(ordered, ordered[1:]):
            if current - previous == timedelta(days=1):
                run += 1
            else:
                run = 1
            longest = max(longest, run)

        return run, longest
