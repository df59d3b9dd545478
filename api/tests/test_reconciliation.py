"""
Tests for completing interrupted cascades and rebuilding aggregates.
"""
from datetime import date, datetime, timedelta

from models import ReadingSession, User
from services.aggregation_service import AggregationService
from services.reconciliation_service import ReconciliationService
from tests.conftest import BASE_TIME


def ended_session(db, user, book, start: datetime, seconds: int, **overrides) -> ReadingSession:
    """An ended session as left behind when the cascade did not run."""
    values = dict(
        user_id=user.id,
        book_id=book.id,
        book_type=book.item_type,
        start_time=start,
        end_time=start + timedelta(seconds=seconds),
        duration_seconds=seconds,
        aggregated_seconds=0,
        is_active=False,
        stats_applied=False,
        version=2,
    )
    values.update(overrides)
    session = ReadingSession(**values)
    db.add(session)
    db.commit()
    return session


def reload_user(db, user_id) -> User:
    user = db.get(User, user_id)
    db.refresh(user)
    return user


class TestApplyPending:
    """Test finishing interrupted end-of-session cascades."""

    def test_applies_pending_session_once(self, db_session, test_user, test_book):
        ended_session(db_session, test_user, test_book, BASE_TIME, 300)

        processed = ReconciliationService.apply_pending(db_session, now=BASE_TIME + timedelta(hours=1))
        again = ReconciliationService.apply_pending(db_session, now=BASE_TIME + timedelta(hours=2))

        assert processed == 1
        assert again == 0
        assert AggregationService.get_day_total(db_session, test_user.id, BASE_TIME.date()) == 300

        user = reload_user(db_session, test_user.id)
        assert user.total_reading_duration == 300
        assert user.current_streak_days == 1
        assert user.books_read_count == 1

    def test_completes_partial_contribution(self, db_session, test_user, test_book):
        AggregationService.contribute(db_session, test_user.id, BASE_TIME.date(), 100)
        db_session.commit()
        ended_session(db_session, test_user, test_book, BASE_TIME, 250, aggregated_seconds=100, stats_applied=True)

        processed = ReconciliationService.apply_pending(db_session, now=BASE_TIME + timedelta(hours=1))

        assert processed == 1
        assert AggregationService.get_day_total(db_session, test_user.id, BASE_TIME.date()) == 250
        # Profile was already updated when the session ended
        assert reload_user(db_session, test_user.id).total_reading_duration == 0

    def test_active_sessions_are_left_alone(self, db_session, test_user, test_book):
        ended_session(
            db_session, test_user, test_book, BASE_TIME, 120,
            is_active=True, end_time=None,
        )

        assert ReconciliationService.apply_pending(db_session, now=BASE_TIME) == 0


class TestRebuildUser:
    """Test rebuilding aggregates from session history."""

    def test_rebuild_from_sessions(self, db_session, make_user, test_book, make_book):
        user = make_user("drifted", total_reading_duration=99, current_streak_days=40, total_reading_days=2)
        other_book = make_book("Kindred")
        day = BASE_TIME
        ended_session(db_session, user, test_book, day, 100)
        ended_session(db_session, user, test_book, day + timedelta(days=1), 200, finished_book=True)
        ended_session(db_session, user, other_book, day + timedelta(days=2), 300)
        ended_session(db_session, user, other_book, day + timedelta(days=5), 50)
        # Stale aggregate for a day without sessions
        AggregationService.contribute(db_session, user.id, date(2024, 2, 1), 999)
        db_session.commit()

        rebuilt = ReconciliationService.rebuild_user(db_session, user.id)

        assert rebuilt.total_reading_duration == 650
        assert rebuilt.total_reading_days == 4
        assert rebuilt.current_streak_days == 1
        assert rebuilt.max_streak_days == 3
        assert rebuilt.last_reading_date == (day + timedelta(days=5)).date()
        assert rebuilt.books_read_count == 2
        assert rebuilt.books_finished_count == 1

        assert AggregationService.get_day_total(db_session, user.id, date(2024, 2, 1)) == 0
        assert AggregationService.get_day_total(db_session, user.id, day.date() + timedelta(days=2)) == 300

        # Nothing left for the pending sweep to double count
        assert ReconciliationService.apply_pending(db_session, now=day + timedelta(days=6)) == 0
        assert AggregationService.get_day_total(db_session, user.id, day.date()) == 100

    def test_rebuild_is_repeatable(self, db_session, test_user, test_book):
        ended_session(db_session, test_user, test_book, BASE_TIME, 100)

        first = ReconciliationService.rebuild_user(db_session, test_user.id).total_reading_duration
        second = ReconciliationService.rebuild_user(db_session, test_user.id).total_reading_duration

        assert first == second == 100
        assert AggregationService.get_day_total(db_session, test_user.id, BASE_TIME.date()) == 100
