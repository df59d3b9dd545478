"""
User model - stores the reader identity and the cumulative reading profile.
"""
from sqlalchemy import Column, Integer, String, Date, DateTime
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime


class User(Base):
    """User model with reading profile counters."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    avatar = Column(String(500), nullable=True)

    # Reading profile
    total_reading_duration = Column(Integer, nullable=False, default=0)  # seconds, all-time
    total_reading_days = Column(Integer, nullable=False, default=0)
    current_streak_days = Column(Integer, nullable=False, default=0)
    max_streak_days = Column(Integer, nullable=False, default=0)
    last_reading_date = Column(Date, nullable=True)
    books_read_count = Column(Integer, nullable=False, default=0)
    books_finished_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    sessions = relationship("ReadingSession", back_populates="user")
    milestones = relationship("ReadingMilestone", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"
