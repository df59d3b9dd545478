"""
Reading endpoints - session lifecycle, today's progress and annotations.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from database import get_db
from models import User
from schemas import (
    DataResponse,
    StartSessionRequest,
    StartSessionResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    PauseResumeResponse,
    EndSessionRequest,
    EndSessionResponse,
    ActiveSessionResponse,
    TodayDurationResponse,
    AnnotationRequest,
    AnnotationResponse,
    MilestoneAchieved,
)
from services.aggregation_service import AggregationService
from services.milestone_service import MilestoneService
from services.session_service import SessionService
from utils.dependencies import get_current_user, get_request_time

router = APIRouter()


def format_duration(seconds: int) -> str:
    """Format seconds as e.g. '1h 5m' or '42m'."""
    hours, remainder = divmod(max(0, seconds), 3600)
    minutes = remainder // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@router.post("/sessions/start", response_model=DataResponse[StartSessionResponse])
async def start_session(
    request: StartSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """
    Start a reading session.

    - Any session still active for the user is ended first
    - The book must exist in the catalog
    """
    session = SessionService.start(
        db,
        current_user.id,
        request.book_id,
        request.book_type.value,
        position=request.position,
        chapter_index=request.chapter_index,
        device_type=request.device_type,
        device_id=request.device_id,
        now=now,
    )
    return {"data": StartSessionResponse(session_id=session.id, start_time=session.start_time)}


@router.post("/sessions/{session_id}/heartbeat", response_model=DataResponse[HeartbeatResponse])
async def heartbeat(
    session_id: int,
    request: HeartbeatRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """
    Report progress on an active session.

    Heartbeats arriving faster than the configured interval without new
    pages are coalesced and only return current totals.
    """
    progress = SessionService.heartbeat(
        db,
        session_id,
        current_user.id,
        current_position=request.current_position,
        chapter_index=request.chapter_index,
        pages_read=request.pages_read,
        now=now,
    )
    return {"data": HeartbeatResponse(**progress)}


@router.post("/sessions/{session_id}/pause", response_model=DataResponse[PauseResumeResponse])
async def pause_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    result = SessionService.pause(db, session_id, current_user.id, now=now)
    return {"data": PauseResumeResponse(**result)}


@router.post("/sessions/{session_id}/resume", response_model=DataResponse[PauseResumeResponse])
async def resume_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    result = SessionService.resume(db, session_id, current_user.id, now=now)
    return {"data": PauseResumeResponse(**result)}


@router.post("/sessions/{session_id}/end", response_model=DataResponse[EndSessionResponse])
async def end_session(
    session_id: int,
    request: Optional[EndSessionRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """
    End a reading session.

    - Finalizes the duration and updates daily totals, streak and profile
    - Returns milestones achieved by this session
    - Ending an already ended session returns its totals again
    """
    request = request or EndSessionRequest()
    result = SessionService.end(
        db,
        session_id,
        current_user.id,
        end_position=request.end_position,
        chapter_index=request.chapter_index,
        pages_read=request.pages_read,
        finished=request.finished,
        now=now,
    )
    result["milestones_achieved"] = [
        MilestoneAchieved.model_validate(m) for m in result["milestones_achieved"]
    ]
    return {"data": EndSessionResponse(**result)}


@router.get("/sessions/active", response_model=DataResponse[Optional[ActiveSessionResponse]])
async def get_active_session(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """Get the current user's active session, or null."""
    active = SessionService.get_active_session(db, current_user.id, now=now)
    return {"data": ActiveSessionResponse(**active) if active else None}


@router.get("/today", response_model=DataResponse[TodayDurationResponse])
async def get_today_duration(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    today = SessionService.get_today_total(db, current_user.id, now)
    return {"data": TodayDurationResponse(today_duration=today, formatted_duration=format_duration(today))}


@router.post("/annotations", response_model=DataResponse[AnnotationResponse])
async def record_annotation(
    request: AnnotationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_request_time),
):
    """Count a note or highlight for today and award the first-annotation milestone."""
    kind = request.kind.value
    AggregationService.record_annotation(db, current_user.id, kind, now.date())
    milestone = MilestoneService.award_first_annotation(db, current_user.id, kind, now=now)
    db.commit()

    achieved = [MilestoneAchieved.model_validate(milestone)] if milestone else []
    return {"data": AnnotationResponse(kind=request.kind, milestones_achieved=achieved)}
