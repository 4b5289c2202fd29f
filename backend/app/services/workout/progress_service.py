"""
Progress Mutation Service

Applies a pointer save and/or one set result to the caller's ACTIVE session.
A client-supplied event id is recorded as a unique fact before anything else
in the transaction; if it was already recorded the mutation is skipped and the
current state is returned, so redelivered queue items take effect at most once.
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ForbiddenError, NotFoundError
from app.models.workout_session import (
    WorkoutExerciseItem,
    WorkoutSession,
    WorkoutSessionEvent,
    WorkoutSet,
)
from app.schemas.workout_session import SetUpdate
from app.services.workout.pointer import Pointer
from app.services.workout.session_service import WorkoutSessionService

logger = logging.getLogger(__name__)

SET_RESULT_FIELDS = ("weight", "reps", "rpe")


class ProgressMutationService:
    """Idempotent progress writes against the active session"""

    @staticmethod
    def _record_event(db: Session, session_id: str, event_id: str) -> bool:
        """Insert the (session, event) fact. False when it already exists."""
        db.add(WorkoutSessionEvent(workout_session_id=session_id, event_id=event_id))
        try:
            db.flush()
        except IntegrityError:
            # The event row is the first write of the transaction, nothing else is lost
            db.rollback()
            return False
        return True

    @staticmethod
    def _apply_set_update(db: Session, session: WorkoutSession, update: SetUpdate) -> WorkoutSet:
        item = db.get(WorkoutExerciseItem, str(update.workout_exercise_item_id))
        if not item:
            raise NotFoundError("Exercise item not found")
        if item.workout_group.workout_session_id != session.id:
            raise ForbiddenError("Set does not belong to active session")

        target = db.query(WorkoutSet).filter(
            WorkoutSet.workout_exercise_item_id == item.id,
            WorkoutSet.set_number == update.set_number,
        ).first()
        if not target:
            raise NotFoundError("Set not found")

        # Omitted result fields keep their stored value; explicit nulls clear them
        for field in SET_RESULT_FIELDS:
            if field in update.model_fields_set:
                setattr(target, field, getattr(update, field))

        was_done = bool(target.is_done)
        target.is_done = update.is_done
        if update.is_done and not was_done:
            target.completed_at = datetime.now(timezone.utc)
        elif not update.is_done:
            target.completed_at = None
        return target

    @staticmethod
    def apply_progress(
        db: Session,
        user_id: str,
        event_id: Optional[str] = None,
        pointer_update: Optional[Pointer] = None,
        set_update: Optional[SetUpdate] = None,
    ) -> WorkoutSession:
        session = WorkoutSessionService.require_active(db, user_id)
        session_id = session.id

        if event_id and not ProgressMutationService._record_event(db, session_id, event_id):
            logger.info(f"Duplicate event {event_id} for session {session_id}, skipping")
            return db.get(WorkoutSession, session_id)

        try:
            if pointer_update is not None:
                session.current_pointer = pointer_update
            if set_update is not None:
                ProgressMutationService._apply_set_update(db, session, set_update)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(session)
        return session
