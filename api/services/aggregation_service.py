"""
Service for folding reading time into per-user per-day aggregates.

Every contribution is an additive delta. The total column is only ever changed
with ``total = total + :delta`` in SQL, so concurrent sessions of the same user
cannot lose each other's updates.
"""
from typing import Optional
from datetime import date, datetime
from sqlalchemy.orm import Session
from sqlalchemy import update, select, func
from sqlalchemy.exc import IntegrityError
import logging

from models.daily_stat import DailyReadingStat
from models.user import User

logger = logging.getLogger(__name__)


def book_key(book_type: str, book_id: int) -> str:
    """Key used in the per-book duration map."""
    return f"{book_type}:{book_id}"


class AggregationService:
    """Service for DailyReadingStat upserts and reads."""

    ANNOTATION_NOTE = "note"
    ANNOTATION_HIGHLIGHT = "highlight"

    @staticmethod
    def _ensure_row(db: Session, user_id: int, day: date) -> None:
        """Insert an empty aggregate row for (user, day) unless one exists."""
        exists = db.execute(
            select(DailyReadingStat.id).where(
                DailyReadingStat.user_id == user_id,
                DailyReadingStat.date == day,
            )
        ).first()
        if exists is not None:
            return

        try:
            with db.begin_nested():
                db.add(DailyReadingStat(
                    user_id=user_id,
                    date=day,
                    total_duration_seconds=0,
                    category_durations={},
                    book_durations={},
                ))
        except IntegrityError:
            # Another request created the row first
            logger.debug(f"Daily stat row for user {user_id} on {day} already created")

    @staticmethod
    def contribute(
        db: Session,
        user_id: int,
        day: date,
        duration_delta: int,
        pages_delta: int = 0,
        book: Optional[str] = None,
        category: Optional[str] = None,
        books_finished_delta: int = 0,
    ) -> int:
        """
        Add a duration delta (and optional extras) to the (user, day) aggregate.

        Args:
            db: Database session (not committed here, the caller owns the transaction)
            user_id: User id
            day: Calendar date (UTC) of the contribution
            duration_delta: Seconds to add; negative values are clamped to 0
            pages_delta: Pages to add
            book: Book key (see ``book_key``) for the per-book duration map
            category: Catalog category for the per-category duration map
            books_finished_delta: Finished books to add

        Returns:
            The duration delta actually applied
        """
        if duration_delta < 0:
            logger.warning(
                f"Anomaly: negative duration delta {duration_delta}s for user {user_id} "
                f"on {day}, clamped to 0"
            )
            duration_delta = 0
        pages_delta = max(0, pages_delta or 0)

        if duration_delta == 0 and pages_delta == 0 and books_finished_delta == 0 and book is None:
            return 0

        AggregationService._ensure_row(db, user_id, day)

        db.execute(
            update(DailyReadingStat)
            .where(DailyReadingStat.user_id == user_id, DailyReadingStat.date == day)
            .values(
                total_duration_seconds=DailyReadingStat.total_duration_seconds + duration_delta,
                pages_read=DailyReadingStat.pages_read + pages_delta,
                books_finished=DailyReadingStat.books_finished + books_finished_delta,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        if book is not None or category is not None:
            AggregationService._merge_duration_maps(db, user_id, day, duration_delta, book, category)

        return duration_delta

    @staticmethod
    def _merge_duration_maps(
        db: Session,
        user_id: int,
        day: date,
        duration_delta: int,
        book: Optional[str],
        category: Optional[str],
    ) -> None:
        """Update the JSON duration maps under a row lock."""
        stat = db.execute(
            select(DailyReadingStat)
            .where(DailyReadingStat.user_id == user_id, DailyReadingStat.date == day)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

        if book is not None:
            book_durations = dict(stat.book_durations or {})
            book_durations[book] = book_durations.get(book, 0) + duration_delta
            stat.book_durations = book_durations
            stat.books_read = len(book_durations)

        if category is not None:
            category_durations = dict(stat.category_durations or {})
            category_durations[category] = category_durations.get(category, 0) + duration_delta
            stat.category_durations = category_durations

        db.flush()

    @staticmethod
    def record_annotation(db: Session, user_id: int, kind: str, day: date) -> None:
        """Count a note or highlight created on ``day``. Does not commit."""
        if kind == AggregationService.ANNOTATION_NOTE:
            column = DailyReadingStat.notes_created
        elif kind == AggregationService.ANNOTATION_HIGHLIGHT:
            column = DailyReadingStat.highlights_created
        else:
            raise ValueError(f"Invalid annotation kind: {kind}")

        AggregationService._ensure_row(db, user_id, day)
        db.execute(
            update(DailyReadingStat)
            .where(DailyReadingStat.user_id == user_id, DailyReadingStat.date == day)
            .values({column.key: column + 1, "updated_at": datetime.utcnow()})
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def add_profile_duration(db: Session, user_id: int, seconds: int) -> None:
        """Atomically add finalized session time to the user's all-time total."""
        if seconds <= 0:
            return
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(total_reading_duration=User.total_reading_duration + seconds)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def get_day_total(db: Session, user_id: int, day: date) -> int:
        """Total seconds recorded for (user, day); 0 when there is no row."""
        total = db.execute(
            select(DailyReadingStat.total_duration_seconds).where(
                DailyReadingStat.user_id == user_id,
                DailyReadingStat.date == day,
            )
        ).scalar_one_or_none()
        return total or 0

    @staticmethod
    def get_range_total(db: Session, user_id: int, start: date, end: date) -> int:
        """Total seconds for (user) between two dates, inclusive."""
        total = db.execute(
            select(func.coalesce(func.sum(DailyReadingStat.total_duration_seconds), 0)).where(
                DailyReadingStat.user_id == user_id,
                DailyReadingStat.date >= start,
                DailyReadingStat.date <= end,
            )
        ).scalar_one()
        return int(total or 0)
