"""
ReadingSession model - one continuous reading interval for one book on one device.

Rows are never deleted; they are the durable source of truth for reading time.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime


class ReadingSession(Base):
    """Reading session model."""
    __tablename__ = "reading_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(Integer, nullable=False)
    book_type = Column(String(20), nullable=False)  # ebook/magazine/audiobook

    # Timing
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)
    # Portion of duration_seconds already added to daily_reading_stats
    aggregated_seconds = Column(Integer, nullable=False, default=0)
    last_heartbeat_at = Column(DateTime, nullable=True)

    # Position
    start_position = Column(String(500), nullable=True)
    end_position = Column(String(500), nullable=True)
    start_chapter = Column(Integer, nullable=True)
    end_chapter = Column(Integer, nullable=True)
    pages_read = Column(Integer, nullable=False, default=0)

    # Device
    device_type = Column(String(20), nullable=True)  # ios/android/web
    device_id = Column(String(255), nullable=True)

    # State
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    paused_at = Column(DateTime, nullable=True)
    total_paused_seconds = Column(Integer, nullable=False, default=0)
    finished_book = Column(Boolean, nullable=False, default=False)
    # End-of-session cascade (streak, profile, milestones) completed
    stats_applied = Column(Boolean, nullable=False, default=False, index=True)
    # Bumped on every mutation, used for compare-and-swap updates
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("idx_reading_sessions_user_time", "user_id", "start_time"),
        Index("idx_reading_sessions_book", "book_id", "book_type"),
        # At most one active session per user
        Index(
            "uq_reading_sessions_one_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    def __repr__(self):
        return (
            f"<ReadingSession(id={self.id}, user_id={self.user_id}, "
            f"active={self.is_active}, duration={self.duration_seconds})>"
        )
