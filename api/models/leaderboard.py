"""
Weekly leaderboard models - settled entries, settlement guard rows and likes.
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime


class WeeklyLeaderboardEntry(Base):
    """One user's standing for a settled ISO week (Monday to Sunday)."""
    __tablename__ = "weekly_leaderboard"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    week_end = Column(Date, nullable=False)

    total_duration_seconds = Column(Integer, nullable=False, default=0)
    rank = Column(Integer, nullable=False)
    rank_change = Column(Integer, nullable=False, default=0)

    reading_days = Column(Integer, nullable=False, default=0)
    books_read = Column(Integer, nullable=False, default=0)
    likes_received = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_lb_user_week"),
        # Leaderboard query optimization
        Index("idx_weekly_lb_week", "week_start", "rank"),
    )

    def __repr__(self):
        return f"<WeeklyLeaderboardEntry(user_id={self.user_id}, week={self.week_start}, rank={self.rank})>"


class LeaderboardSettlement(Base):
    """Marks a week as settled; the unique week_start guards double settlement."""
    __tablename__ = "leaderboard_settlements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    week_start = Column(Date, nullable=False, unique=True)
    participants = Column(Integer, nullable=False, default=0)
    settled_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<LeaderboardSettlement(week={self.week_start}, participants={self.participants})>"


class LeaderboardLike(Base):
    """A like given to another reader for a given week."""
    __tablename__ = "leaderboard_likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "target_user_id", "week_start", name="uq_leaderboard_like"),
    )
