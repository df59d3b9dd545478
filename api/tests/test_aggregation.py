"""
Tests for daily reading aggregates.
"""
from datetime import date

import pytest
from sqlalchemy import select

from models import DailyReadingStat
from services.aggregation_service import AggregationService, book_key

DAY = date(2024, 3, 4)


class TestContribute:
    """Test additive contributions."""

    def test_contributions_add_up(self, db_session, test_user):
        AggregationService.contribute(db_session, test_user.id, DAY, 40, book=book_key("ebook", 1), category="fiction")
        AggregationService.contribute(db_session, test_user.id, DAY, 60, book=book_key("ebook", 1), category="fiction")
        AggregationService.contribute(db_session, test_user.id, DAY, 30, book=book_key("magazine", 7), category="news")
        db_session.commit()

        stat = db_session.execute(select(DailyReadingStat)).scalar_one()
        assert stat.total_duration_seconds == 130
        assert stat.book_durations == {"ebook:1": 100, "magazine:7": 30}
        assert stat.category_durations == {"fiction": 100, "news": 30}
        assert stat.books_read == 2

    def test_negative_delta_is_clamped(self, db_session, test_user, caplog):
        AggregationService.contribute(db_session, test_user.id, DAY, 50)
        applied = AggregationService.contribute(db_session, test_user.id, DAY, -20)
        db_session.commit()

        assert applied == 0
        assert AggregationService.get_day_total(db_session, test_user.id, DAY) == 50
        assert "Anomaly" in caplog.text

    def test_days_are_separate(self, db_session, test_user):
        AggregationService.contribute(db_session, test_user.id, DAY, 50)
        AggregationService.contribute(db_session, test_user.id, date(2024, 3, 5), 70)
        db_session.commit()

        assert AggregationService.get_day_total(db_session, test_user.id, DAY) == 50
        assert AggregationService.get_range_total(db_session, test_user.id, DAY, date(2024, 3, 10)) == 120

    def test_missing_day_reads_zero(self, db_session, test_user):
        assert AggregationService.get_day_total(db_session, test_user.id, DAY) == 0


class TestAnnotations:
    """Test note/highlight counters."""

    def test_record_annotations(self, db_session, test_user):
        AggregationService.record_annotation(db_session, test_user.id, "note", DAY)
        AggregationService.record_annotation(db_session, test_user.id, "highlight", DAY)
        AggregationService.record_annotation(db_session, test_user.id, "highlight", DAY)
        db_session.commit()

        stat = db_session.execute(select(DailyReadingStat)).scalar_one()
        assert stat.notes_created == 1
        assert stat.highlights_created == 2
        assert stat.total_duration_seconds == 0

    def test_invalid_kind(self, db_session, test_user):
        with pytest.raises(ValueError):
            AggregationService.record_annotation(db_session, test_user.id, "bookmark", DAY)
