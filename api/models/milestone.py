"""
ReadingMilestone model - one-time achievement records.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime


class ReadingMilestone(Base):
    """Milestone achieved by a user; immutable once created."""
    __tablename__ = "reading_milestones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    milestone_type = Column(String(30), nullable=False)
    milestone_value = Column(Integer, nullable=False)

    # Related content
    book_id = Column(Integer, nullable=True)
    book_type = Column(String(20), nullable=True)
    book_title = Column(String(500), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(String(500), nullable=True)
    achieved_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="milestones")

    __table_args__ = (
        UniqueConstraint("user_id", "milestone_type", "milestone_value", name="uq_milestone_user_type_value"),
    )

    def __repr__(self):
        return f"<ReadingMilestone(user_id={self.user_id}, type={self.milestone_type}, value={self.milestone_value})>"
