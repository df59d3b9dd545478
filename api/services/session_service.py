"""
Service for the reading session lifecycle: start, heartbeat, pause, resume, end.

Concurrency model:
- Session rows are mutated with compare-and-swap on ``version``; a request
  that loses the race re-reads the row and tries again.
- Reading time reaches the daily aggregate through a claim on
  ``aggregated_seconds`` (``UPDATE ... WHERE aggregated_seconds = :old``), so
  only one of two concurrent requests contributes a given delta.
- ``end`` commits the session first, then the daily contribution, then the
  streak/profile/milestone cascade. A failed later stage leaves the session
  flagged (``stats_applied = false``) for ReconciliationService.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from config import settings
from models.session import ReadingSession
from models.milestone import ReadingMilestone
from models.user import User
from services.aggregation_service import AggregationService, book_key
from services.catalog_service import CatalogService
from services.milestone_service import MilestoneService
from services.streak_service import StreakService
from utils.exceptions import InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)


class SessionService:
    """Service for reading session tracking."""

    MAX_UPDATE_ATTEMPTS = 3

    @staticmethod
    def _load(db: Session, session_id: int, user_id: int) -> Optional[ReadingSession]:
        """Fetch a session owned by the user, bypassing stale identity-map state."""
        return db.execute(
            select(ReadingSession)
            .where(ReadingSession.id == session_id, ReadingSession.user_id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def _paused_seconds(session: ReadingSession, now: datetime) -> int:
        """Total paused time, including a pause still in progress."""
        paused = session.total_paused_seconds or 0
        if session.is_paused and session.paused_at is not None:
            paused += max(0, int((now - session.paused_at).total_seconds()))
        return paused

    @staticmethod
    def calculate_duration(session: ReadingSession, now: datetime) -> int:
        """
        Elapsed reading time of a session at ``now``, excluding paused time.

        This is the session's running total, not a delta. Values above
        MAX_SESSION_DURATION_SECONDS are clamped and logged as anomalies.
        """
        elapsed = int((now - session.start_time).total_seconds())
        duration = max(0, elapsed - SessionService._paused_seconds(session, now))

        if duration > settings.MAX_SESSION_DURATION_SECONDS:
            logger.warning(
                f"Anomaly: session {session.id} duration {duration}s exceeds "
                f"{settings.MAX_SESSION_DURATION_SECONDS}s, clamped"
            )
            duration = settings.MAX_SESSION_DURATION_SECONDS

        return duration

    @staticmethod
    def _compare_and_swap(db: Session, session: ReadingSession, values: Dict[str, Any]) -> bool:
        """Apply ``values`` if the row still has the version we read. Commits on success."""
        values["version"] = ReadingSession.version + 1
        result = db.execute(
            update(ReadingSession)
            .where(
                ReadingSession.id == session.id,
                ReadingSession.version == session.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            db.rollback()
            logger.info(f"Session {session.id} changed concurrently (version {session.version}), retrying")
            return False

        db.commit()
        return True

    @staticmethod
    def contribute_pending(db: Session, session: ReadingSession, now: datetime, pages_delta: int = 0) -> int:
        """
        Move the not-yet-aggregated part of the session duration into the
        daily aggregate for ``now``'s UTC date. Does not commit.

        Returns:
            Seconds contributed
        """
        previous = session.aggregated_seconds or 0
        delta = (session.duration_seconds or 0) - previous
        day = now.date()
        book = CatalogService.get(db, session.book_id, session.book_type)

        claimed = 0
        if delta > 0:
            result = db.execute(
                update(ReadingSession)
                .where(
                    ReadingSession.id == session.id,
                    ReadingSession.aggregated_seconds == previous,
                )
                .values(aggregated_seconds=session.duration_seconds)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                claimed = delta
            else:
                logger.info(f"Contribution for session {session.id} already claimed by another request")
        elif delta < 0:
            # Route through the aggregator so the anomaly is clamped and logged
            AggregationService.contribute(db, session.user_id, day, delta)

        if claimed == 0 and pages_delta == 0:
            return 0

        return AggregationService.contribute(
            db,
            session.user_id,
            day,
            claimed,
            pages_delta=pages_delta,
            book=book_key(session.book_type, session.book_id),
            category=book.category if book else None,
        )

    @staticmethod
    def start(
        db: Session,
        user_id: int,
        book_id: int,
        book_type: str,
        position: Optional[str] = None,
        chapter_index: Optional[int] = None,
        device_type: Optional[str] = None,
        device_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReadingSession:
        """
        Start a new reading session, closing any session still active for the user.

        Raises:
            ReadingValidationError: Unknown book type
            NotFoundError: Book not in the catalog
        """
        if now is None:
            now = datetime.utcnow()

        CatalogService.resolve(db, book_id, book_type)

        for attempt in range(SessionService.MAX_UPDATE_ATTEMPTS):
            active_ids = db.execute(
                select(ReadingSession.id).where(
                    ReadingSession.user_id == user_id,
                    ReadingSession.is_active.is_(True),
                )
            ).scalars().all()

            for active_id in active_ids:
                logger.info(f"Force-closing active session {active_id} for user {user_id}")
                SessionService.end(db, active_id, user_id, now=now)

            session = ReadingSession(
                user_id=user_id,
                book_id=book_id,
                book_type=book_type,
                start_time=now,
                start_position=position,
                end_position=position,
                start_chapter=chapter_index,
                end_chapter=chapter_index,
                device_type=device_type,
                device_id=device_id,
                is_active=True,
                duration_seconds=0,
                aggregated_seconds=0,
                pages_read=0,
                total_paused_seconds=0,
                version=1,
            )

            try:
                db.add(session)
                db.commit()
            except IntegrityError:
                # A concurrent start created another active session first
                db.rollback()
                logger.info(f"Concurrent session start for user {user_id}, retrying")
                continue

            db.refresh(session)
            logger.info(f"Reading session {session.id} started: user={user_id}, book={book_type}:{book_id}")
            return session

        raise InvalidStateError("Could not start session due to concurrent updates, please retry")

    @staticmethod
    def heartbeat(
        db: Session,
        session_id: int,
        user_id: int,
        current_position: Optional[str] = None,
        chapter_index: Optional[int] = None,
        pages_read: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Update an active session's duration and position, contributing the
        new reading time to today's aggregate.

        Raises:
            InvalidStateError: Session missing or no longer active
        """
        if now is None:
            now = datetime.utcnow()
        pages_delta = max(0, pages_read or 0)

        for attempt in range(SessionService.MAX_UPDATE_ATTEMPTS):
            session = SessionService._load(db, session_id, user_id)
            if session is None or not session.is_active:
                raise InvalidStateError("Session not found or inactive")

            last = session.last_heartbeat_at
            if (
                pages_delta == 0
                and last is not None
                and (now - last).total_seconds() < settings.HEARTBEAT_MIN_INTERVAL_SECONDS
            ):
                logger.debug(f"Heartbeat for session {session_id} coalesced")
                return SessionService._progress(db, session, now)

            values = {
                "duration_seconds": SessionService.calculate_duration(session, now),
                "last_heartbeat_at": now,
                "pages_read": ReadingSession.pages_read + pages_delta,
            }
            if current_position is not None:
                values["end_position"] = current_position
            if chapter_index is not None:
                values["end_chapter"] = chapter_index

            if SessionService._compare_and_swap(db, session, values):
                break
        else:
            raise InvalidStateError("Session is being updated concurrently, please retry")

        session = SessionService._load(db, session_id, user_id)
        SessionService.contribute_pending(db, session, now, pages_delta)
        db.commit()

        return SessionService._progress(db, session, now)

    @staticmethod
    def _progress(db: Session, session: ReadingSession, now: datetime) -> Dict[str, Any]:
        return {
            "session_id": session.id,
            "duration_seconds": session.duration_seconds,
            "today_duration": SessionService.get_today_total(db, session.user_id, now),
            "total_book_duration": SessionService.get_book_total(
                db, session.user_id, session.book_id, session.book_type
            ),
            "is_paused": session.is_paused,
        }

    @staticmethod
    def pause(db: Session, session_id: int, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Pause an active session; paused time does not count as reading."""
        if now is None:
            now = datetime.utcnow()

        for attempt in range(SessionService.MAX_UPDATE_ATTEMPTS):
            session = SessionService._load(db, session_id, user_id)
            if session is None or not session.is_active:
                raise InvalidStateError("Session not found or inactive")
            if session.is_paused:
                raise InvalidStateError("Session is already paused")

            values = {
                "is_paused": True,
                "paused_at": now,
                "duration_seconds": SessionService.calculate_duration(session, now),
            }
            if SessionService._compare_and_swap(db, session, values):
                logger.info(f"Session {session_id} paused")
                return {"session_id": session_id, "is_paused": True}

        raise InvalidStateError("Session is being updated concurrently, please retry")

    @staticmethod
    def resume(db: Session, session_id: int, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Resume a paused session, folding the pause into total_paused_seconds."""
        if now is None:
            now = datetime.utcnow()

        for attempt in range(SessionService.MAX_UPDATE_ATTEMPTS):
            session = SessionService._load(db, session_id, user_id)
            if session is None or not session.is_active:
                raise InvalidStateError("Session not found or inactive")
            if not session.is_paused:
                raise InvalidStateError("Session is not paused")

            total_paused = SessionService._paused_seconds(session, now)
            values = {
                "is_paused": False,
                "paused_at": None,
                "total_paused_seconds": total_paused,
            }
            if SessionService._compare_and_swap(db, session, values):
                logger.info(f"Session {session_id} resumed after {total_paused}s paused in total")
                return {
                    "session_id": session_id,
                    "is_paused": False,
                    "total_paused_seconds": total_paused,
                }

        raise InvalidStateError("Session is being updated concurrently, please retry")

    @staticmethod
    def end(
        db: Session,
        session_id: int,
        user_id: int,
        end_position: Optional[str] = None,
        chapter_index: Optional[int] = None,
        pages_read: Optional[int] = None,
        finished: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        End a session and run the aggregate -> streak -> milestone cascade.

        Ending a session that is already inactive returns its last totals and
        no milestones, so client retries are harmless.

        Raises:
            NotFoundError: Session does not exist for this user
        """
        if now is None:
            now = datetime.utcnow()
        pages_delta = max(0, pages_read or 0)

        for attempt in range(SessionService.MAX_UPDATE_ATTEMPTS):
            session = SessionService._load(db, session_id, user_id)
            if session is None:
                raise NotFoundError(f"Session {session_id} not found")

            if not session.is_active:
                logger.info(f"Session {session_id} already ended, returning last totals")
                return SessionService._ended_result(db, session, now, [])

            values = {
                "end_time": now,
                "duration_seconds": SessionService.calculate_duration(session, now),
                "pages_read": ReadingSession.pages_read + pages_delta,
                "total_paused_seconds": SessionService._paused_seconds(session, now),
                "is_active": False,
                "is_paused": False,
                "paused_at": None,
                "finished_book": bool(finished),
            }
            if end_position is not None:
                values["end_position"] = end_position
            if chapter_index is not None:
                values["end_chapter"] = chapter_index

            if SessionService._compare_and_swap(db, session, values):
                break
        else:
            raise InvalidStateError("Session is being updated concurrently, please retry")

        session = SessionService._load(db, session_id, user_id)
        logger.info(f"Reading session {session_id} ended: duration={session.duration_seconds}s")

        milestones = []
        try:
            SessionService.contribute_pending(db, session, session.end_time, pages_delta)
            db.commit()
            achieved = SessionService.apply_session_stats(db, session, now)
            db.commit()
            milestones = achieved
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Stats cascade failed for session {session_id}; left for reconciliation")

        session = SessionService._load(db, session_id, user_id)
        return SessionService._ended_result(db, session, now, milestones)

    @staticmethod
    def apply_session_stats(db: Session, session: ReadingSession, now: Optional[datetime] = None) -> List[ReadingMilestone]:
        """
        Run the end-of-session cascade exactly once per session: profile
        duration, streak, book counters and milestones. Does not commit.

        Returns:
            Milestones newly achieved by this session
        """
        if now is None:
            now = datetime.utcnow()

        claimed = db.execute(
            update(ReadingSession)
            .where(
                ReadingSession.id == session.id,
                ReadingSession.is_active.is_(False),
                ReadingSession.stats_applied.is_(False),
            )
            .values(stats_applied=True)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            return []

        user_id = session.user_id
        day = session.end_time.date()
        book = CatalogService.get(db, session.book_id, session.book_type)
        achieved = []

        AggregationService.add_profile_duration(db, user_id, session.duration_seconds)
        if session.duration_seconds > 0:
            StreakService.apply_reading_day(db, user_id, day)

        same_book = (
            ReadingSession.user_id == user_id,
            ReadingSession.book_id == session.book_id,
            ReadingSession.book_type == session.book_type,
            ReadingSession.id != session.id,
            ReadingSession.stats_applied.is_(True),
        )

        read_before = db.execute(select(func.count(ReadingSession.id)).where(*same_book)).scalar_one()
        if read_before == 0:
            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(books_read_count=User.books_read_count + 1)
                .execution_options(synchronize_session=False)
            )
            if book is not None:
                milestone = MilestoneService.award_started_book(db, user_id, book, now=now)
                if milestone is not None:
                    achieved.append(milestone)

        if session.finished_book:
            finished_before = db.execute(
                select(func.count(ReadingSession.id)).where(*same_book, ReadingSession.finished_book.is_(True))
            ).scalar_one()
            if finished_before == 0:
                db.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(books_finished_count=User.books_finished_count + 1)
                    .execution_options(synchronize_session=False)
                )
                AggregationService.contribute(db, user_id, day, 0, books_finished_delta=1)
                if book is not None:
                    milestone = MilestoneService.award_finished_book(db, user_id, book, now=now)
                    if milestone is not None:
                        achieved.append(milestone)

        achieved.extend(MilestoneService.check(db, user_id, now=now))
        return achieved

    @staticmethod
    def _ended_result(
        db: Session,
        session: ReadingSession,
        now: datetime,
        milestones: List[ReadingMilestone],
    ) -> Dict[str, Any]:
        return {
            "session_id": session.id,
            "duration_seconds": session.duration_seconds,
            "total_book_duration": SessionService.get_book_total(
                db, session.user_id, session.book_id, session.book_type
            ),
            "today_duration": SessionService.get_today_total(db, session.user_id, now),
            "milestones_achieved": milestones,
        }

    @staticmethod
    def get_active_session(db: Session, user_id: int, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """The user's active session with its live duration, or None."""
        if now is None:
            now = datetime.utcnow()

        session = db.execute(
            select(ReadingSession)
            .where(ReadingSession.user_id == user_id, ReadingSession.is_active.is_(True))
            .execution_options(populate_existing=True)
        ).scalars().first()
        if session is None:
            return None

        return {
            "session_id": session.id,
            "book_id": session.book_id,
            "book_type": session.book_type,
            "start_time": session.start_time,
            "duration_seconds": SessionService.calculate_duration(session, now),
            "is_paused": session.is_paused,
        }

    @staticmethod
    def get_today_total(db: Session, user_id: int, now: Optional[datetime] = None) -> int:
        """Seconds read today (UTC) according to the daily aggregate."""
        if now is None:
            now = datetime.utcnow()
        return AggregationService.get_day_total(db, user_id, now.date())

    @staticmethod
    def get_book_total(db: Session, user_id: int, book_id: int, book_type: str) -> int:
        """Seconds spent on a book, summed over all of the user's sessions."""
        total = db.execute(
            select(func.coalesce(func.sum(ReadingSession.duration_seconds), 0)).where(
                ReadingSession.user_id == user_id,
                ReadingSession.book_id == book_id,
                ReadingSession.book_type == book_type,
            )
        ).scalar_one()
        return int(total or 0)
