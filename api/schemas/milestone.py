"""
Pydantic schemas for reading milestones.
"""
from pydantic import Field
from datetime import date as date_type, datetime
from typing import Optional

from .common import CamelModel


class MilestoneAchieved(CamelModel):
    """Milestone as returned when it is first achieved."""
    type: str = Field(validation_alias="milestone_type")
    value: int = Field(validation_alias="milestone_value")
    title: str


class MilestoneBook(CamelModel):
    id: int
    title: Optional[str] = None
    type: Optional[str] = None


class MilestoneResponse(CamelModel):
    id: int
    type: str
    date: Optional[date_type]
    title: str
    description: Optional[str] = None
    value: Optional[int] = None
    book: Optional[MilestoneBook] = None

    @classmethod
    def from_model(cls, milestone) -> "MilestoneResponse":
        book = None
        if milestone.book_id is not None:
            book = MilestoneBook(id=milestone.book_id, title=milestone.book_title, type=milestone.book_type)
        achieved_at: Optional[datetime] = milestone.achieved_at
        return cls(
            id=milestone.id,
            type=milestone.milestone_type,
            date=achieved_at.date() if achieved_at else None,
            title=milestone.title,
            description=milestone.description,
            value=milestone.milestone_value,
            book=book,
        )
