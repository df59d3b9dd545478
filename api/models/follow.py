"""
UserFollow model - who follows whom; defines the friends leaderboard scope.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from database import Base
from datetime import datetime


class UserFollow(Base):
    __tablename__ = "user_follows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_user_follow"),
    )
