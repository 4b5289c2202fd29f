"""
Workout session lifecycle: lookup, finish and resume.

Every state change runs in one transaction; the one-ACTIVE-per-user rule is
kept by pausing before activating, backed by a partial unique index.
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.workout_session import WorkoutSession, WorkoutSessionStatus

logger = logging.getLogger(__name__)


class WorkoutSessionService:
    """Reads and lifecycle transitions for a user's workout sessions"""

    @staticmethod
    def get_active(db: Session, user_id: str) -> Optional[WorkoutSession]:
        return db.query(WorkoutSession).filter(
            WorkoutSession.user_id == user_id,
            WorkoutSession.status == WorkoutSessionStatus.ACTIVE.value,
        ).order_by(WorkoutSession.started_at.desc()).first()

    @staticmethod
    def require_active(db: Session, user_id: str) -> WorkoutSession:
        session = WorkoutSessionService.get_active(db, user_id)
        if not session:
            raise NotFoundError("No active session")
        return session

    @staticmethod
    def get(db: Session, user_id: str, session_id: str) -> WorkoutSession:
        session = db.get(WorkoutSession, session_id)
        if not session:
            raise NotFoundError("Session not found")
        if session.user_id != user_id:
            raise ForbiddenError("Session does not belong to user")
        return session

    @staticmethod
    def pause_active(db: Session, user_id: str) -> int:
        """Move every ACTIVE session of the user to PAUSED inside the caller's transaction."""
        return db.query(WorkoutSession).filter(
            WorkoutSession.user_id == user_id,
            WorkoutSession.status == WorkoutSessionStatus.ACTIVE.value,
        ).update({"status": WorkoutSessionStatus.PAUSED.value}, synchronize_session="fetch")

    @staticmethod
    def finish(db: Session, user_id: str, session_id: Optional[str] = None) -> WorkoutSession:
        """Mark the user's ACTIVE session (optionally a specific one) FINISHED."""
        query = db.query(WorkoutSession).filter(
            WorkoutSession.user_id == user_id,
            WorkoutSession.status == WorkoutSessionStatus.ACTIVE.value,
        )
        if session_id:
            query = query.filter(WorkoutSession.id == session_id)
        session = query.order_by(WorkoutSession.started_at.desc()).first()
        if not session:
            raise NotFoundError("No active session")

        try:
            session.status = WorkoutSessionStatus.FINISHED.value
            session.ended_at = datetime.now(timezone.utc)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(session)
        logger.info(f"Finished session {session.id} for user {user_id}")
        return session

    @staticmethod
    def resume(db: Session, user_id: str, session_id: str) -> WorkoutSession:
        """Re-activate a PAUSED session, pausing whichever session is active now."""
        session = WorkoutSessionService.get(db, user_id, session_id)
        if session.status == WorkoutSessionStatus.FINISHED.value:
            raise ValidationError("Finished sessions are read-only")
        if session.status == WorkoutSessionStatus.ACTIVE.value:
            return session

        try:
            WorkoutSessionService.pause_active(db, user_id)
            session.status = WorkoutSessionStatus.ACTIVE.value
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Another session was activated at the same time")
        except Exception:
            db.rollback()
            raise

        db.refresh(session)
        logger.info(f"Resumed session {session.id} for user {user_id}")
        return session
