"""
Snapshot Builder - freezes a routine day into a new workout session

The build is two-pass: the whole groups -> items -> sets tree is computed in
memory first (ids assigned up front), then persisted breadth-first with one
batch insert per level inside the caller's transaction.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.routine import ExerciseGroupType, Routine, RoutineAssignment, RoutineDay
from app.models.workout_session import (
    WorkoutExerciseItem,
    WorkoutGroup,
    WorkoutSession,
    WorkoutSessionStatus,
    WorkoutSet,
)
from app.schemas.workout_session import RestOverrides
from app.services.workout.pointer import START
from app.services.workout.session_service import WorkoutSessionService

logger = logging.getLogger(__name__)


@dataclass
class SnapshotPlan:
    """Rows for one session snapshot, grouped by tree level."""

    groups: List[Dict[str, Any]] = field(default_factory=list)
    items: List[Dict[str, Any]] = field(default_factory=list)
    sets: List[Dict[str, Any]] = field(default_factory=list)


def _resolve(override: Optional[int], default: Optional[int]) -> Optional[int]:
    return override if override is not None else default


def plan_snapshot(session_id: str, day: Any, overrides: Optional[RestOverrides] = None) -> SnapshotPlan:
    """Compute the frozen tree for ``day`` without touching the database."""
    overrides = overrides or RestOverrides()
    plan = SnapshotPlan()

    for group in day.groups:
        group_id = str(uuid.uuid4())
        plan.groups.append({
            "id": group_id,
            "workout_session_id": session_id,
            "source_group_id": group.id,
            "type": ExerciseGroupType(group.type).value,
            "order_index": group.order_index,
            "rounds_total": group.rounds_total,
            "round_current": 1,
            "rest_between_exercises_seconds": _resolve(
                overrides.rest_between_exercises_seconds, group.rest_between_exercises_seconds
            ) or 0,
            "rest_after_round_seconds": _resolve(
                overrides.rest_after_round_seconds, group.rest_after_round_seconds
            ) or 0,
            "rest_after_set_seconds": _resolve(
                overrides.rest_after_set_seconds, group.rest_after_set_seconds
            ),
        })

        for slot in group.exercises:
            item_id = str(uuid.uuid4())
            target_sets_total = slot.target_sets_per_round * group.rounds_total
            plan.items.append({
                "id": item_id,
                "workout_group_id": group_id,
                "source_group_exercise_id": slot.id,
                "order_in_group": slot.order_in_group,
                "target_sets_total": target_sets_total,
                "rep_range": slot.rep_range,
                "notes": slot.notes,
            })
            for set_number in range(1, target_sets_total + 1):
                plan.sets.append({
                    "id": str(uuid.uuid4()),
                    "workout_exercise_item_id": item_id,
                    "set_number": set_number,
                    "weight": None,
                    "reps": None,
                    "rpe": None,
                    "is_done": False,
                    "completed_at": None,
                })

    return plan


class SnapshotBuilder:
    """Creates ACTIVE sessions from routine days"""

    @staticmethod
    def _ensure_access(db: Session, user_id: str, routine: Routine) -> None:
        if routine.owner_id == user_id:
            return
        assigned = db.query(RoutineAssignment).filter(
            RoutineAssignment.user_id == user_id,
            RoutineAssignment.routine_id == routine.id,
            RoutineAssignment.is_active.is_(True),
        ).first()
        if not assigned:
            raise ForbiddenError("Routine does not belong to user")

    @staticmethod
    def start(
        db: Session,
        user_id: str,
        routine_id: str,
        day_id: str,
        overrides: Optional[RestOverrides] = None,
    ) -> WorkoutSession:
        """
        Start a new session for ``day_id``.

        Any ACTIVE session of the user is paused (never finished or deleted) in
        the same transaction that creates the new one.
        """
        routine = db.get(Routine, routine_id)
        if not routine:
            raise NotFoundError("Routine not found")
        SnapshotBuilder._ensure_access(db, user_id, routine)

        day = db.get(RoutineDay, day_id)
        if not day or day.routine_id != routine_id:
            raise NotFoundError("Routine day not found")

        overrides = overrides or RestOverrides()
        session_id = str(uuid.uuid4())
        plan = plan_snapshot(session_id, day, overrides)

        try:
            paused = WorkoutSessionService.pause_active(db, user_id)
            if paused:
                logger.info(f"Paused {paused} active session(s) for user {user_id}")

            session = WorkoutSession(
                id=session_id,
                user_id=user_id,
                routine_id=routine_id,
                routine_day_id=day_id,
                status=WorkoutSessionStatus.ACTIVE.value,
                override_rest_between_exercises_seconds=overrides.rest_between_exercises_seconds,
                override_rest_after_round_seconds=overrides.rest_after_round_seconds,
                override_rest_after_set_seconds=overrides.rest_after_set_seconds,
            )
            session.current_pointer = START
            db.add(session)
            db.flush()

            # Breadth-first: parents exist before their children reference them
            for model, rows in ((WorkoutGroup, plan.groups), (WorkoutExerciseItem, plan.items), (WorkoutSet, plan.sets)):
                if rows:
                    db.execute(insert(model), rows)

            db.commit()
        except IntegrityError:
            # Another start for this user committed an ACTIVE session first
            db.rollback()
            raise ConflictError("Another session was started at the same time")
        except Exception:
            db.rollback()
            raise

        db.refresh(session)
        logger.info(
            f"Started session {session.id} for user {user_id}: "
            f"{len(plan.groups)} groups, {len(plan.items)} items, {len(plan.sets)} sets"
        )
        return session
