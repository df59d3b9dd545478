"""
Tests for the Celery tasks, run eagerly against the test database.
"""
from datetime import date, timedelta

import pytest

from services.aggregation_service import AggregationService
from tasks import leaderboard_tasks, reconciliation_tasks
from tests.conftest import BASE_TIME, TestingSessionLocal
from utils.exceptions import ReadingValidationError

WEEK = date(2024, 3, 4)


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, db_session):
    monkeypatch.setattr(leaderboard_tasks, "SessionLocal", TestingSessionLocal)
    monkeypatch.setattr(reconciliation_tasks, "SessionLocal", TestingSessionLocal)


class TestLeaderboardTasks:

    def test_settle_given_week(self, db_session, test_user):
        AggregationService.contribute(db_session, test_user.id, WEEK + timedelta(days=1), 120)
        db_session.commit()

        result = leaderboard_tasks.settle_weekly_leaderboard(week_start=WEEK.isoformat())

        assert result["status"] == "success"
        assert result["week_start"] == "2024-03-04"
        assert result["participants"] == 1

    def test_settle_rejects_non_monday(self):
        with pytest.raises(ReadingValidationError):
            leaderboard_tasks.settle_weekly_leaderboard(week_start="2024-03-06")


class TestReconciliationTasks:

    def test_apply_pending_with_nothing_to_do(self):
        assert reconciliation_tasks.apply_pending_session_stats() == {"status": "success", "processed": 0}

    def test_rebuild_user_stats(self, db_session, test_user, test_book, read):
        read(test_user, test_book, BASE_TIME, 90)
        user_id = test_user.id
        # Release the shared connection before the task opens its own session
        db_session.commit()

        result = reconciliation_tasks.rebuild_user_stats(user_id)

        assert result["total_reading_duration"] == 90
        assert result["current_streak_days"] == 1
