"""
Pydantic schemas for reading sessions.
"""
from pydantic import Field
from datetime import datetime
from typing import List, Optional
from enum import Enum

from .common import CamelModel
from .milestone import MilestoneAchieved


class BookType(str, Enum):
    """Enum for readable item types."""
    EBOOK = "ebook"
    MAGAZINE = "magazine"
    AUDIOBOOK = "audiobook"


class StartSessionRequest(CamelModel):
    """Schema for starting a reading session."""
    book_id: int
    book_type: BookType
    position: Optional[str] = Field(None, max_length=500)
    chapter_index: Optional[int] = Field(None, ge=0)
    device_type: Optional[str] = Field(None, max_length=20)
    device_id: Optional[str] = Field(None, max_length=255)


class StartSessionResponse(CamelModel):
    session_id: int
    start_time: datetime


class HeartbeatRequest(CamelModel):
    current_position: Optional[str] = Field(None, max_length=500)
    chapter_index: Optional[int] = Field(None, ge=0)
    pages_read: Optional[int] = Field(None, ge=0, description="Pages read since the previous call")


class HeartbeatResponse(CamelModel):
    session_id: int
    duration_seconds: int
    today_duration: int
    total_book_duration: int
    is_paused: bool = False


class PauseResumeResponse(CamelModel):
    session_id: int
    is_paused: bool
    total_paused_seconds: Optional[int] = None


class EndSessionRequest(CamelModel):
    end_position: Optional[str] = Field(None, max_length=500)
    chapter_index: Optional[int] = Field(None, ge=0)
    pages_read: Optional[int] = Field(None, ge=0)
    finished: bool = Field(False, description="The reader finished the book in this session")


class EndSessionResponse(CamelModel):
    session_id: int
    duration_seconds: int
    total_book_duration: int
    today_duration: int
    milestones_achieved: List[MilestoneAchieved]


class ActiveSessionResponse(CamelModel):
    session_id: int
    book_id: int
    book_type: str
    start_time: datetime
    duration_seconds: int
    is_paused: bool


class TodayDurationResponse(CamelModel):
    today_duration: int
    formatted_duration: str


class AnnotationKind(str, Enum):
    NOTE = "note"
    HIGHLIGHT = "highlight"


class AnnotationRequest(CamelModel):
    kind: AnnotationKind


class AnnotationResponse(CamelModel):
    kind: AnnotationKind
    milestones_achieved: List[MilestoneAchieved]
