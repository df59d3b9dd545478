"""
Service for detecting and recording reading milestones.

Milestones are unique per (user, type, value). Inserts go through a SAVEPOINT
and a unique violation means "already achieved", so concurrent or repeated
checks never create duplicates and never fail.
"""
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import logging

from models.milestone import ReadingMilestone
from models.user import User
from models.catalog import CatalogItem

logger = logging.getLogger(__name__)


class MilestoneService:
    """Service for threshold and event milestones."""

    TYPE_TOTAL_HOURS = "total_hours"
    TYPE_STREAK_DAYS = "streak_days"
    TYPE_TOTAL_DAYS = "total_days"
    TYPE_BOOKS_FINISHED = "books_finished"
    TYPE_STARTED_BOOK = "started_book"
    TYPE_FINISHED_BOOK = "finished_book"
    TYPE_FIRST_HIGHLIGHT = "first_highlight"
    TYPE_FIRST_NOTE = "first_note"

    # Ascending threshold tables
    HOUR_THRESHOLDS = [10, 50, 100, 500, 1000, 2000, 3000, 5000]
    STREAK_THRESHOLDS = [7, 30, 90, 180, 365, 500, 1000]
    DAY_THRESHOLDS = [100, 200, 365, 500, 1000]
    BOOKS_FINISHED_THRESHOLDS = [1, 5, 10, 20, 50, 100, 200, 500]

    @staticmethod
    def threshold_title(milestone_type: str, value: int) -> str:
        """Human-readable title for a threshold milestone."""
        if milestone_type == MilestoneService.TYPE_TOTAL_HOURS:
            return f"{value} hours of reading"
        if milestone_type == MilestoneService.TYPE_STREAK_DAYS:
            return f"{value}-day reading streak"
        if milestone_type == MilestoneService.TYPE_TOTAL_DAYS:
            return f"Read on {value} days"
        if milestone_type == MilestoneService.TYPE_BOOKS_FINISHED:
            return "Finished your first book" if value == 1 else f"Finished {value} books"
        raise ValueError(f"Not a threshold milestone type: {milestone_type}")

    @staticmethod
    def current_values(user: User) -> dict:
        """Cumulative metric per threshold milestone type."""
        return {
            MilestoneService.TYPE_TOTAL_HOURS: (user.total_reading_duration or 0) // 3600,
            MilestoneService.TYPE_STREAK_DAYS: user.current_streak_days or 0,
            MilestoneService.TYPE_TOTAL_DAYS: user.total_reading_days or 0,
            MilestoneService.TYPE_BOOKS_FINISHED: user.books_finished_count or 0,
        }

    @staticmethod
    def thresholds() -> dict:
        return {
            MilestoneService.TYPE_TOTAL_HOURS: MilestoneService.HOUR_THRESHOLDS,
            MilestoneService.TYPE_STREAK_DAYS: MilestoneService.STREAK_THRESHOLDS,
            MilestoneService.TYPE_TOTAL_DAYS: MilestoneService.DAY_THRESHOLDS,
            MilestoneService.TYPE_BOOKS_FINISHED: MilestoneService.BOOKS_FINISHED_THRESHOLDS,
        }

    @staticmethod
    def award(
        db: Session,
        user_id: int,
        milestone_type: str,
        value: int,
        title: str,
        description: Optional[str] = None,
        book: Optional[CatalogItem] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ReadingMilestone]:
        """
        Insert a milestone unless (user, type, value) already exists.

        Returns:
            The new milestone, or None if it had already been achieved
        """
        existing = db.execute(
            select(ReadingMilestone.id).where(
                ReadingMilestone.user_id == user_id,
                ReadingMilestone.milestone_type == milestone_type,
                ReadingMilestone.milestone_value == value,
            )
        ).first()
        if existing is not None:
            return None

        milestone = ReadingMilestone(
            user_id=user_id,
            milestone_type=milestone_type,
            milestone_value=value,
            title=title,
            description=description,
            book_id=book.id if book else None,
            book_type=book.item_type if book else None,
            book_title=book.title if book else None,
            achieved_at=now or datetime.utcnow(),
        )

        try:
            with db.begin_nested():
                db.add(milestone)
        except IntegrityError:
            logger.debug(f"Milestone {milestone_type}={value} for user {user_id} already recorded")
            return None

        logger.info(f"Milestone achieved: user={user_id}, {milestone_type}={value}")
        return milestone

    @staticmethod
    def check(db: Session, user_id: int, now: Optional[datetime] = None) -> List[ReadingMilestone]:
        """
        Record every threshold the user has reached but not yet been awarded.

        Args:
            db: Database session (not committed here)
            user_id: User id
            now: Achievement timestamp

        Returns:
            Newly achieved milestones only
        """
        user = db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if user is None:
            return []

        values = MilestoneService.current_values(user)
        achieved = []

        for milestone_type, table in MilestoneService.thresholds().items():
            current = values[milestone_type]
            for threshold in table:
                if threshold > current:
                    break
                milestone = MilestoneService.award(
                    db,
                    user_id,
                    milestone_type,
                    threshold,
                    MilestoneService.threshold_title(milestone_type, threshold),
                    now=now,
                )
                if milestone is not None:
                    achieved.append(milestone)

        return achieved

    @staticmethod
    def award_started_book(db: Session, user_id: int, book: CatalogItem, now: Optional[datetime] = None):
        return MilestoneService.award(
            db, user_id, MilestoneService.TYPE_STARTED_BOOK, book.id,
            f"Started reading {book.title}", book=book, now=now,
        )

    @staticmethod
    def award_finished_book(db: Session, user_id: int, book: CatalogItem, now: Optional[datetime] = None):
        return MilestoneService.award(
            db, user_id, MilestoneService.TYPE_FINISHED_BOOK, book.id,
            f"Finished {book.title}", book=book, now=now,
        )

    @staticmethod
    def award_first_annotation(db: Session, user_id: int, kind: str, now: Optional[datetime] = None):
        """Award first_note / first_highlight; later annotations return None."""
        if kind == "note":
            return MilestoneService.award(
                db, user_id, MilestoneService.TYPE_FIRST_NOTE, 1, "Wrote your first note", now=now,
            )
        if kind == "highlight":
            return MilestoneService.award(
                db, user_id, MilestoneService.TYPE_FIRST_HIGHLIGHT, 1, "Made your first highlight", now=now,
            )
        raise ValueError(f"Invalid annotation kind: {kind}")
