"""
Tests for weekly leaderboard settlement and queries.
"""
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from models import LeaderboardSettlement, UserFollow, WeeklyLeaderboardEntry
from services.aggregation_service import AggregationService, book_key
from services.leaderboard_service import LeaderboardService
from utils.exceptions import InvalidStateError, NotFoundError, ReadingValidationError

WEEK = date(2024, 3, 4)
NEXT_WEEK = date(2024, 3, 11)
SETTLED_AT = datetime(2024, 3, 11, 0, 0, 5)


@pytest.fixture
def readers(db_session, make_user):
    """Three readers with weekly totals 600/600/300 and one with no reading time."""
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    dave = make_user("dave")

    AggregationService.contribute(db_session, alice.id, WEEK, 600, book=book_key("ebook", 1))
    AggregationService.contribute(db_session, bob.id, WEEK + timedelta(days=2), 400, book=book_key("ebook", 1))
    AggregationService.contribute(db_session, bob.id, WEEK + timedelta(days=6), 200, book=book_key("ebook", 2))
    AggregationService.contribute(db_session, carol.id, WEEK + timedelta(days=3), 300)
    AggregationService.record_annotation(db_session, dave.id, "note", WEEK)
    # Outside the week
    AggregationService.contribute(db_session, carol.id, WEEK + timedelta(days=7), 5000)
    db_session.commit()

    return alice, bob, carol, dave


def entries_for(db, week_start):
    return db.execute(
        select(WeeklyLeaderboardEntry)
        .where(WeeklyLeaderboardEntry.week_start == week_start)
        .order_by(WeeklyLeaderboardEntry.rank, WeeklyLeaderboardEntry.user_id)
    ).scalars().all()


class TestWeekBounds:
    """Test week arithmetic."""

    def test_week_bounds(self):
        assert LeaderboardService.week_bounds(date(2024, 3, 6)) == (WEEK, date(2024, 3, 10))
        assert LeaderboardService.week_bounds(datetime(2024, 3, 10, 23, 59, 59)) == (WEEK, date(2024, 3, 10))

    def test_previous_week_start(self):
        assert LeaderboardService.previous_week_start(SETTLED_AT) == WEEK


class TestDenseRanks:
    """Test rank assignment."""

    def test_ties_share_rank(self):
        standings = [
            {"user_id": 3, "total_duration_seconds": 300},
            {"user_id": 2, "total_duration_seconds": 600},
            {"user_id": 1, "total_duration_seconds": 600},
            {"user_id": 4, "total_duration_seconds": 100},
        ]

        ranked = LeaderboardService.assign_dense_ranks(standings)

        assert [(s["user_id"], s["rank"]) for s in ranked] == [(1, 1), (2, 1), (3, 2), (4, 3)]


class TestSettlement:
    """Test weekly settlement."""

    def test_settle_week(self, db_session, readers):
        alice, bob, carol, dave = readers

        settlement = LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        entries = entries_for(db_session, WEEK)
        assert settlement.participants == 3
        assert [(e.user_id, e.rank) for e in entries] == [(alice.id, 1), (bob.id, 1), (carol.id, 2)]
        assert entries[1].reading_days == 2
        assert entries[1].books_read == 2
        assert all(e.rank_change == 0 for e in entries)
        assert all(e.week_end == date(2024, 3, 10) for e in entries)

    def test_second_settlement_is_a_no_op(self, db_session, readers):
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)
        before = [(e.user_id, e.rank) for e in entries_for(db_session, WEEK)]

        settlement = LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT + timedelta(hours=1))

        assert settlement.settled_at == SETTLED_AT
        assert [(e.user_id, e.rank) for e in entries_for(db_session, WEEK)] == before
        assert len(db_session.execute(select(LeaderboardSettlement)).scalars().all()) == 1

    def test_forced_settlement_recomputes(self, db_session, readers):
        alice, bob, carol, dave = readers
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        AggregationService.contribute(db_session, carol.id, WEEK + timedelta(days=6), 700)
        db_session.commit()
        LeaderboardService.settle_week(db_session, WEEK, force=True, now=SETTLED_AT + timedelta(hours=1))

        entries = entries_for(db_session, WEEK)
        assert [(e.user_id, e.rank) for e in entries] == [(carol.id, 1), (alice.id, 2), (bob.id, 2)]

    def test_rank_change_against_previous_week(self, db_session, readers):
        alice, bob, carol, dave = readers
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        AggregationService.contribute(db_session, alice.id, NEXT_WEEK + timedelta(days=1), 100)
        db_session.commit()
        LeaderboardService.settle_week(db_session, NEXT_WEEK, now=SETTLED_AT + timedelta(days=7))

        changes = {e.user_id: (e.rank, e.rank_change) for e in entries_for(db_session, NEXT_WEEK)}
        # carol read 5000s on the Monday of the next week
        assert changes == {carol.id: (1, 1), alice.id: (2, -1)}

    def test_settle_requires_monday(self, db_session):
        with pytest.raises(ReadingValidationError):
            LeaderboardService.settle_week(db_session, date(2024, 3, 5))

    def test_empty_week(self, db_session, test_user):
        settlement = LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        assert settlement.participants == 0
        assert entries_for(db_session, WEEK) == []


class TestGetLeaderboard:
    """Test leaderboard queries."""

    def test_live_leaderboard_for_current_week(self, db_session, readers):
        alice, bob, carol, dave = readers

        board = LeaderboardService.get_leaderboard(db_session, alice.id, WEEK + timedelta(days=2), "all")

        assert board["week_range"]["is_settled"] is False
        assert board["week_range"]["start"] == WEEK
        assert board["week_range"]["settlement_time"] == "2024-03-10T23:59:59Z"
        assert [(e["user"]["username"], e["rank"]) for e in board["entries"]] == [
            ("alice", 1), ("bob", 1), ("carol", 2),
        ]
        assert board["total_participants"] == 3
        assert board["my_ranking"]["rank"] == 1

    def test_friends_scope_reranks_within_circle(self, db_session, readers):
        alice, bob, carol, dave = readers
        db_session.add(UserFollow(follower_id=carol.id, following_id=bob.id))
        db_session.commit()
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        board = LeaderboardService.get_leaderboard(db_session, carol.id, WEEK, "friends")

        assert board["week_range"]["is_settled"] is True
        assert [(e["user"]["id"], e["rank"]) for e in board["entries"]] == [(bob.id, 1), (carol.id, 2)]
        assert board["my_ranking"]["rank"] == 2

    def test_friends_rank_change_compares_within_circle(self, db_session, make_user):
        readers = [make_user(f"reader{i}") for i in range(5)]
        me = readers[-1]
        for week_start in (WEEK, NEXT_WEEK):
            for position, user in enumerate(readers):
                AggregationService.contribute(db_session, user.id, week_start + timedelta(days=1), 1000 - position * 100)
        db_session.commit()
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        live = LeaderboardService.get_leaderboard(db_session, me.id, NEXT_WEEK, "friends")
        assert live["week_range"]["is_settled"] is False
        assert (live["my_ranking"]["rank"], live["my_ranking"]["rank_change"]) == (1, 0)

        LeaderboardService.settle_week(db_session, NEXT_WEEK, now=SETTLED_AT + timedelta(days=7))
        settled = LeaderboardService.get_leaderboard(db_session, me.id, NEXT_WEEK, "friends")
        assert settled["week_range"]["is_settled"] is True
        assert (settled["my_ranking"]["rank"], settled["my_ranking"]["rank_change"]) == (1, 0)

        everyone = LeaderboardService.get_leaderboard(db_session, me.id, NEXT_WEEK, "all")
        assert (everyone["my_ranking"]["rank"], everyone["my_ranking"]["rank_change"]) == (5, 0)

    def test_friends_rank_change_tracks_moves_within_circle(self, db_session, make_user):
        leader, me = make_user("leader"), make_user("me")
        db_session.add(UserFollow(follower_id=me.id, following_id=leader.id))
        AggregationService.contribute(db_session, leader.id, WEEK, 900)
        AggregationService.contribute(db_session, me.id, WEEK, 300)
        AggregationService.contribute(db_session, leader.id, NEXT_WEEK, 200)
        AggregationService.contribute(db_session, me.id, NEXT_WEEK, 800)
        db_session.commit()
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        board = LeaderboardService.get_leaderboard(db_session, me.id, NEXT_WEEK, "friends")

        changes = {e["user"]["id"]: (e["rank"], e["rank_change"]) for e in board["entries"]}
        assert changes == {me.id: (1, 1), leader.id: (2, -1)}

    def test_user_without_reading_has_no_ranking(self, db_session, readers):
        alice, bob, carol, dave = readers

        board = LeaderboardService.get_leaderboard(db_session, dave.id, WEEK, "all")

        assert board["my_ranking"] is None
        assert dave.id not in [e["user"]["id"] for e in board["entries"]]

    def test_invalid_scope(self, db_session, readers):
        with pytest.raises(ReadingValidationError):
            LeaderboardService.get_leaderboard(db_session, readers[0].id, WEEK, "global")


class TestLikes:
    """Test leaderboard likes."""

    def test_like_user(self, db_session, readers):
        alice, bob, carol, dave = readers
        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        LeaderboardService.like_user(db_session, alice.id, carol.id, WEEK + timedelta(days=3))

        entry = db_session.execute(
            select(WeeklyLeaderboardEntry).where(
                WeeklyLeaderboardEntry.user_id == carol.id,
                WeeklyLeaderboardEntry.week_start == WEEK,
            ).execution_options(populate_existing=True)
        ).scalar_one()
        assert entry.likes_received == 1

        board = LeaderboardService.get_leaderboard(db_session, alice.id, WEEK, "all")
        liked = {e["user"]["id"]: e["is_liked"] for e in board["entries"]}
        assert liked == {alice.id: False, bob.id: False, carol.id: True}

    def test_duplicate_like(self, db_session, readers):
        alice, bob, carol, dave = readers
        LeaderboardService.like_user(db_session, alice.id, carol.id, WEEK)

        with pytest.raises(InvalidStateError):
            LeaderboardService.like_user(db_session, alice.id, carol.id, WEEK)

    def test_like_yourself(self, db_session, readers):
        with pytest.raises(ReadingValidationError):
            LeaderboardService.like_user(db_session, readers[0].id, readers[0].id, WEEK)

    def test_like_missing_user(self, db_session, readers):
        with pytest.raises(NotFoundError):
            LeaderboardService.like_user(db_session, readers[0].id, 9999, WEEK)

    def test_likes_before_settlement_are_carried_over(self, db_session, readers):
        alice, bob, carol, dave = readers
        LeaderboardService.like_user(db_session, alice.id, bob.id, WEEK)
        LeaderboardService.like_user(db_session, carol.id, bob.id, WEEK)

        LeaderboardService.settle_week(db_session, WEEK, now=SETTLED_AT)

        entry = next(e for e in entries_for(db_session, WEEK) if e.user_id == bob.id)
        assert entry.likes_received == 2
