"""
Service for weekly leaderboard settlement and leaderboard queries.
"""
from typing import Any, Dict, List, Optional, Tuple
from datetime import date, datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
import logging

from config import settings
from models.daily_stat import DailyReadingStat
from models.follow import UserFollow
from models.leaderboard import LeaderboardLike, LeaderboardSettlement, WeeklyLeaderboardEntry
from models.user import User
from utils.exceptions import InvalidStateError, NotFoundError, ReadingValidationError

logger = logging.getLogger(__name__)


class LeaderboardService:
    """Service for calculating and reading weekly reading leaderboards."""

    SCOPE_FRIENDS = "friends"
    SCOPE_ALL = "all"

    @staticmethod
    def week_bounds(reference: Optional[date] = None) -> Tuple[date, date]:
        """
        Get the Monday and Sunday of the ISO week containing ``reference``.

        Args:
            reference: Any date or datetime in the week (defaults to today, UTC)

        Returns:
            Tuple of (week_start, week_end), both inclusive
        """
        if reference is None:
            reference = datetime.utcnow().date()
        if isinstance(reference, datetime):
            reference = reference.date()

        week_start = reference - timedelta(days=reference.weekday())
        return week_start, week_start + timedelta(days=6)

    @staticmethod
    def previous_week_start(now: Optional[datetime] = None) -> date:
        """Monday of the week that ended before the week containing ``now``."""
        current_start, _ = LeaderboardService.week_bounds(now)
        return current_start - timedelta(days=7)

    @staticmethod
    def assign_dense_ranks(standings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Sort standings and assign dense 1-based ranks.

        Higher duration ranks first. Equal durations share a rank and the next
        rank continues sequentially (no gaps); within a rank, entries are listed
        by ascending user id so the order is reproducible.
        """
        ordered = sorted(standings, key=lambda s: (-s["total_duration_seconds"], s["user_id"]))

        current_rank = 0
        previous_duration = None
        for standing in ordered:
            if previous_duration is None or standing["total_duration_seconds"] < previous_duration:
                current_rank += 1
            standing["rank"] = current_rank
            previous_duration = standing["total_duration_seconds"]

        return ordered

    @staticmethod
    def compute_week_standings(
        db: Session,
        week_start: date,
        user_ids: Optional[List[int]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Aggregate a week's DailyReadingStat rows into ranked standings.

        Users without any reading time in the week are excluded.
        """
        week_end = week_start + timedelta(days=6)

        query = select(DailyReadingStat).where(
            and_(
                DailyReadingStat.date >= week_start,
                DailyReadingStat.date <= week_end,
            )
        )
        if user_ids is not None:
            query = query.where(DailyReadingStat.user_id.in_(user_ids))

        # Group by user
        per_user: Dict[int, Dict[str, Any]] = {}
        for stat in db.execute(query).scalars():
            entry = per_user.setdefault(stat.user_id, {
                "user_id": stat.user_id,
                "total_duration_seconds": 0,
                "reading_days": 0,
                "books": set(),
            })
            duration = stat.total_duration_seconds or 0
            entry["total_duration_seconds"] += duration
            if duration > 0:
                entry["reading_days"] += 1
            entry["books"].update(
                key for key, seconds in (stat.book_durations or {}).items() if seconds > 0
            )

        standings = []
        for entry in per_user.values():
            if entry["total_duration_seconds"] <= 0:
                continue
            entry["books_read"] = len(entry.pop("books"))
            standings.append(entry)

        return LeaderboardService.assign_dense_ranks(standings)

    @staticmethod
    def _previous_ranks(db: Session, week_start: date, user_ids: Optional[List[int]] = None) -> Dict[int, int]:
        """
        Ranks from the settlement of the week before ``week_start``.

        With ``user_ids`` the previous week is re-ranked within that circle,
        so the result is comparable with a circle-ranked current week.
        """
        previous_start = week_start - timedelta(days=7)
        query = select(
            WeeklyLeaderboardEntry.user_id,
            WeeklyLeaderboardEntry.rank,
            WeeklyLeaderboardEntry.total_duration_seconds,
        ).where(WeeklyLeaderboardEntry.week_start == previous_start)
        if user_ids is None:
            return {user_id: rank for user_id, rank, _ in db.execute(query).all()}

        query = query.where(WeeklyLeaderboardEntry.user_id.in_(user_ids))
        ranked = LeaderboardService.assign_dense_ranks([
            {"user_id": user_id, "total_duration_seconds": seconds}
            for user_id, _, seconds in db.execute(query).all()
        ])
        return {s["user_id"]: s["rank"] for s in ranked}

    @staticmethod
    def _rank_change(previous_ranks: Dict[int, int], user_id: int, rank: int) -> int:
        previous_rank = previous_ranks.get(user_id)
        return (previous_rank - rank) if previous_rank is not None else 0

    @staticmethod
    def _likes_received(db: Session, week_start: date) -> Dict[int, int]:
        rows = db.execute(
            select(LeaderboardLike.target_user_id, func.count(LeaderboardLike.id))
            .where(LeaderboardLike.week_start == week_start)
            .group_by(LeaderboardLike.target_user_id)
        ).all()
        return {user_id: count for user_id, count in rows}

    @staticmethod
    def get_settlement(db: Session, week_start: date) -> Optional[LeaderboardSettlement]:
        return db.execute(
            select(LeaderboardSettlement).where(LeaderboardSettlement.week_start == week_start)
        ).scalar_one_or_none()

    @staticmethod
    def settle_week(
        db: Session,
        week_start: date,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> LeaderboardSettlement:
        """
        Settle the leaderboard for the week starting on ``week_start``.

        The settlement row is inserted before any entry; its unique week_start
        makes a second run for the same week a no-op. ``force=True`` deletes the
        week's entries and recomputes them.

        Args:
            db: Database session
            week_start: Monday of the week to settle
            force: Recompute even if the week was already settled
            now: Settlement timestamp

        Returns:
            The settlement row for the week
        """
        if week_start.weekday() != 0:
            raise ReadingValidationError(f"Week start {week_start} is not a Monday")
        if now is None:
            now = datetime.utcnow()

        existing = LeaderboardService.get_settlement(db, week_start)
        if existing is not None and not force:
            logger.info(f"Week {week_start} already settled at {existing.settled_at}, skipping")
            return existing

        if existing is None:
            settlement = LeaderboardSettlement(week_start=week_start, participants=0, settled_at=now)
            try:
                db.add(settlement)
                db.flush()
            except IntegrityError:
                db.rollback()
                logger.info(f"Week {week_start} settled concurrently, skipping")
                return LeaderboardService.get_settlement(db, week_start)
        else:
            settlement = existing
            settlement.settled_at = now

        logger.info(f"Settling leaderboard for week starting {week_start}")

        # Delete existing entries for this week
        db.query(WeeklyLeaderboardEntry).filter(
            WeeklyLeaderboardEntry.week_start == week_start
        ).delete(synchronize_session="fetch")

        standings = LeaderboardService.compute_week_standings(db, week_start)
        previous_ranks = LeaderboardService._previous_ranks(db, week_start)
        likes = LeaderboardService._likes_received(db, week_start)
        week_end = week_start + timedelta(days=6)

        for standing in standings:
            db.add(WeeklyLeaderboardEntry(
                user_id=standing["user_id"],
                week_start=week_start,
                week_end=week_end,
                total_duration_seconds=standing["total_duration_seconds"],
                rank=standing["rank"],
                rank_change=LeaderboardService._rank_change(previous_ranks, standing["user_id"], standing["rank"]),
                reading_days=standing["reading_days"],
                books_read=standing["books_read"],
                likes_received=likes.get(standing["user_id"], 0),
            ))

        settlement.participants = len(standings)
        db.commit()
        db.refresh(settlement)

        logger.info(f"Settled week {week_start}: {len(standings)} participants")
        return settlement

    @staticmethod
    def friend_ids(db: Session, user_id: int) -> List[int]:
        """The user plus everyone the user follows."""
        following = db.execute(
            select(UserFollow.following_id).where(UserFollow.follower_id == user_id)
        ).scalars().all()
        return sorted(set(following) | {user_id})

    @staticmethod
    def _live_standings(db: Session, week_start: date, user_ids: Optional[List[int]]) -> List[Dict[str, Any]]:
        """Standings for an unsettled week, compared against the last settled week."""
        standings = LeaderboardService.compute_week_standings(db, week_start, user_ids)
        previous_ranks = LeaderboardService._previous_ranks(db, week_start, user_ids)
        likes = LeaderboardService._likes_received(db, week_start)

        for standing in standings:
            standing["rank_change"] = LeaderboardService._rank_change(
                previous_ranks, standing["user_id"], standing["rank"]
            )
            standing["likes_received"] = likes.get(standing["user_id"], 0)
        return standings

    @staticmethod
    def _settled_standings(db: Session, week_start: date, user_ids: Optional[List[int]]) -> List[Dict[str, Any]]:
        query = select(WeeklyLeaderboardEntry).where(WeeklyLeaderboardEntry.week_start == week_start)
        if user_ids is not None:
            query = query.where(WeeklyLeaderboardEntry.user_id.in_(user_ids))

        standings = [
            {
                "user_id": entry.user_id,
                "total_duration_seconds": entry.total_duration_seconds,
                "reading_days": entry.reading_days,
                "books_read": entry.books_read,
                "rank": entry.rank,
                "rank_change": entry.rank_change,
                "likes_received": entry.likes_received,
            }
            for entry in db.execute(query).scalars()
        ]

        if user_ids is not None:
            # Re-rank within the friends circle, both this week and the previous one
            standings = LeaderboardService.assign_dense_ranks(standings)
            previous_ranks = LeaderboardService._previous_ranks(db, week_start, user_ids)
            for standing in standings:
                standing["rank_change"] = LeaderboardService._rank_change(
                    previous_ranks, standing["user_id"], standing["rank"]
                )
            return standings
        return sorted(standings, key=lambda s: (s["rank"], s["user_id"]))

    @staticmethod
    def get_leaderboard(
        db: Session,
        user_id: int,
        week_start: date,
        scope: str = SCOPE_FRIENDS,
    ) -> Dict[str, Any]:
        """
        Leaderboard for a week, from stored entries if the week is settled
        or computed live from daily aggregates otherwise.
        """
        if scope not in (LeaderboardService.SCOPE_FRIENDS, LeaderboardService.SCOPE_ALL):
            raise ReadingValidationError(f"Invalid leaderboard type: {scope}")

        week_start, week_end = LeaderboardService.week_bounds(week_start)
        user_ids = LeaderboardService.friend_ids(db, user_id) if scope == LeaderboardService.SCOPE_FRIENDS else None

        settled = LeaderboardService.get_settlement(db, week_start) is not None
        if settled:
            standings = LeaderboardService._settled_standings(db, week_start, user_ids)
        else:
            standings = LeaderboardService._live_standings(db, week_start, user_ids)

        top = standings[:settings.LEADERBOARD_MAX_ENTRIES]
        users = {
            u.id: u
            for u in db.query(User).filter(User.id.in_([s["user_id"] for s in top])).all()
        } if top else {}
        liked = set(db.execute(
            select(LeaderboardLike.target_user_id).where(
                LeaderboardLike.user_id == user_id,
                LeaderboardLike.week_start == week_start,
            )
        ).scalars().all())

        entries = []
        for standing in top:
            user = users.get(standing["user_id"])
            entries.append({
                "rank": standing["rank"],
                "user": {
                    "id": standing["user_id"],
                    "username": user.username if user else "",
                    "avatar": user.avatar if user else None,
                },
                "duration": standing["total_duration_seconds"],
                "reading_days": standing["reading_days"],
                "books_read": standing["books_read"],
                "rank_change": standing["rank_change"],
                "likes_count": standing["likes_received"],
                "is_liked": standing["user_id"] in liked,
            })

        mine = next((s for s in standings if s["user_id"] == user_id), None)
        my_ranking = None
        if mine is not None:
            my_ranking = {
                "rank": mine["rank"],
                "duration": mine["total_duration_seconds"],
                "rank_change": mine["rank_change"],
                "reading_days": mine["reading_days"],
            }

        return {
            "week_range": {
                "start": week_start,
                "end": week_end,
                "settlement_time": f"{week_end.isoformat()}T23:59:59Z",
                "is_settled": settled,
            },
            "my_ranking": my_ranking,
            "entries": entries,
            "total_participants": len(standings),
        }

    @staticmethod
    def get_friend_rank(db: Session, user_id: int, week_start: date) -> Optional[int]:
        """Settled rank of a user within their friends circle for a week, or None."""
        standings = LeaderboardService._settled_standings(
            db, week_start, LeaderboardService.friend_ids(db, user_id)
        )
        return next((s["rank"] for s in standings if s["user_id"] == user_id), None)

    @staticmethod
    def like_user(db: Session, user_id: int, target_user_id: int, week_start: date) -> Dict[str, Any]:
        """
        Like another reader for a week. One like per (liker, target, week).

        Raises:
            ReadingValidationError: Liking yourself
            NotFoundError: Target user does not exist
            InvalidStateError: Already liked this week
        """
        if user_id == target_user_id:
            raise ReadingValidationError("You cannot like yourself")
        if db.query(User).filter(User.id == target_user_id).first() is None:
            raise NotFoundError(f"User {target_user_id} not found")

        week_start, _ = LeaderboardService.week_bounds(week_start)

        try:
            with db.begin_nested():
                db.add(LeaderboardLike(user_id=user_id, target_user_id=target_user_id, week_start=week_start))
        except IntegrityError:
            db.rollback()
            raise InvalidStateError("Already liked this user this week")

        db.execute(
            update(WeeklyLeaderboardEntry)
            .where(
                WeeklyLeaderboardEntry.user_id == target_user_id,
                WeeklyLeaderboardEntry.week_start == week_start,
            )
            .values(likes_received=WeeklyLeaderboardEntry.likes_received + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()

        logger.info(f"User {user_id} liked user {target_user_id} for week {week_start}")
        return {"success": True}
