"""
Pydantic schemas for reading statistics.
"""
from pydantic import Field
from datetime import date as date_type
from typing import Annotated, List, Literal, Optional, Union

from .common import CamelModel


class DateRange(CamelModel):
    start: date_type
    end: date_type


class DayDuration(CamelModel):
    date: date_type
    duration: int
    day_of_week: str


class WeekSummary(CamelModel):
    total_duration: int
    daily_average: int
    comparison_change: float
    friend_ranking: Optional[int] = None


class ReadingRecords(CamelModel):
    books_read: int
    reading_days: int
    notes_count: int
    highlights_count: int


class WeekStats(CamelModel):
    dimension: Literal["week"]
    date_range: DateRange
    summary: WeekSummary
    reading_records: ReadingRecords
    duration_by_day: List[DayDuration]


class MonthSummary(CamelModel):
    total_duration: int
    daily_average: int
    comparison_change: float
    reading_days: int


class MonthStats(CamelModel):
    dimension: Literal["month"]
    date_range: DateRange
    summary: MonthSummary
    duration_by_day: List[DayDuration]


class MonthDuration(CamelModel):
    month: int
    duration: int
    reading_days: int


class YearSummary(CamelModel):
    total_duration: int
    monthly_average: int
    total_reading_days: int
    comparison_change: float


class YearStats(CamelModel):
    dimension: Literal["year"]
    year: int
    summary: YearSummary
    duration_by_month: List[MonthDuration]


class TotalSummary(CamelModel):
    total_duration: int
    total_days: int
    current_streak: int
    longest_streak: int
    books_read: int
    books_finished: int


class TotalStats(CamelModel):
    dimension: Literal["total"]
    summary: TotalSummary


class CalendarDay(CamelModel):
    date: date_type
    duration: int
    has_reading: bool


class CalendarMilestone(CamelModel):
    id: int
    date: date_type
    type: str
    title: str
    value: Optional[int] = None
    book_title: Optional[str] = None


class CalendarStats(CamelModel):
    dimension: Literal["calendar"]
    year: int
    month: int
    calendar_days: List[CalendarDay]
    milestones: List[CalendarMilestone]


ReadingStats = Annotated[
    Union[WeekStats, MonthStats, YearStats, TotalStats, CalendarStats],
    Field(discriminator="dimension"),
]
