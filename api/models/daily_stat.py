"""
DailyReadingStat model - per-user per-date reading aggregate.
"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, JSON, UniqueConstraint
from database import Base
from datetime import datetime


class DailyReadingStat(Base):
    """Daily reading aggregate, upserted by additive contributions."""
    __tablename__ = "daily_reading_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    total_duration_seconds = Column(Integer, nullable=False, default=0)
    books_read = Column(Integer, nullable=False, default=0)
    books_finished = Column(Integer, nullable=False, default=0)
    pages_read = Column(Integer, nullable=False, default=0)
    notes_created = Column(Integer, nullable=False, default=0)
    highlights_created = Column(Integer, nullable=False, default=0)

    # {"<category>": seconds} and {"<book_type>:<book_id>": seconds}
    category_durations = Column(JSON, nullable=False, default=dict)
    book_durations = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_stats_user_date"),
    )

    def __repr__(self):
        return f"<DailyReadingStat(user_id={self.user_id}, date={self.date}, total={self.total_duration_seconds})>"
