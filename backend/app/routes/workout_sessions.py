from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.deps import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.workout_session import (
    FinishSessionRequest,
    ProgressUpdateRequest,
    StartSessionRequest,
    WorkoutSessionResponse,
)
from app.services.workout.progress_service import ProgressMutationService
from app.services.workout.serializer import serialize_session
from app.services.workout.session_service import WorkoutSessionService
from app.services.workout.snapshot_builder import SnapshotBuilder

router = APIRouter()


@router.post("/start", response_model=WorkoutSessionResponse)
async def start_session(
    payload: StartSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Freeze a routine day into a new ACTIVE session"""
    session = SnapshotBuilder.start(
        db,
        user_id=current_user.id,
        routine_id=str(payload.routine_id),
        day_id=str(payload.day_id),
        overrides=payload.overrides,
    )
    return serialize_session(db, session)


@router.get("/active", response_model=Optional[WorkoutSessionResponse])
async def get_active_session(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current ACTIVE session, or null"""
    session = WorkoutSessionService.get_active(db, current_user.id)
    if not session:
        return None
    return serialize_session(db, session)


@router.patch("/progress", response_model=WorkoutSessionResponse)
async def patch_progress(
    payload: ProgressUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Save the pointer and/or one set result, at most once per event_id"""
    session = ProgressMutationService.apply_progress(
        db,
        user_id=current_user.id,
        event_id=payload.event_id,
        pointer_update=payload.current_pointer.to_pointer() if payload.current_pointer else None,
        set_update=payload.set_update,
    )
    return serialize_session(db, session)


@router.post("/finish", response_model=WorkoutSessionResponse)
async def finish_session(
    payload: FinishSessionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = WorkoutSessionService.finish(db, current_user.id, str(payload.session_id))
    return serialize_session(db, session)


@router.post("/{session_id}/resume", response_model=WorkoutSessionResponse)
async def resume_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = WorkoutSessionService.resume(db, current_user.id, session_id)
    return serialize_session(db, session)


@router.get("/{session_id}", response_model=WorkoutSessionResponse)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    session = WorkoutSessionService.get(db, current_user.id, session_id)
    return serialize_session(db, session)
