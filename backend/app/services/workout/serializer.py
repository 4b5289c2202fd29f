"""Render a session tree for clients, enriched with exercise catalog metadata."""
from typing import Dict, Iterable

from sqlalchemy.orm import Session

from app.models.routine import Exercise, GroupExercise
from app.models.workout_session import WorkoutSession
from app.schemas.workout_session import (
    PointerPayload,
    WorkoutExerciseItemResponse,
    WorkoutGroupResponse,
    WorkoutSessionResponse,
    WorkoutSetResponse,
)


def _catalog_lookup(db: Session, source_ids: Iterable[str]) -> Dict[str, Exercise]:
    ids = [sid for sid in set(source_ids) if sid]
    if not ids:
        return {}
    rows = (
        db.query(GroupExercise.id, Exercise)
        .join(Exercise, Exercise.id == GroupExercise.exercise_id)
        .filter(GroupExercise.id.in_(ids))
        .all()
    )
    return {source_id: exercise for source_id, exercise in rows}


def serialize_session(db: Session, session: WorkoutSession) -> WorkoutSessionResponse:
    source_ids = [
        item.source_group_exercise_id
        for group in session.workout_groups
        for item in group.workout_items
    ]
    catalog = _catalog_lookup(db, source_ids)

    groups = []
    for group in session.workout_groups:
        items = []
        for item in group.workout_items:
            exercise = catalog.get(item.source_group_exercise_id)
            items.append(WorkoutExerciseItemResponse(
                id=item.id,
                source_group_exercise_id=item.source_group_exercise_id,
                order_in_group=item.order_in_group,
                target_sets_total=item.target_sets_total,
                rep_range=item.rep_range,
                notes=item.notes,
                exercise_name=exercise.name if exercise else None,
                exercise_description=exercise.instructions if exercise else None,
                exercise_media_url=exercise.display_media_url if exercise else None,
                sets=[WorkoutSetResponse.model_validate(s) for s in item.sets],
            ))
        groups.append(WorkoutGroupResponse(
            id=group.id,
            source_group_id=group.source_group_id,
            type=group.type,
            order_index=group.order_index,
            rounds_total=group.rounds_total,
            round_current=group.round_current,
            rest_between_exercises_seconds=group.rest_between_exercises_seconds,
            rest_after_round_seconds=group.rest_after_round_seconds,
            rest_after_set_seconds=group.rest_after_set_seconds,
            workout_items=items,
        ))

    return WorkoutSessionResponse(
        id=session.id,
        user_id=session.user_id,
        routine_id=session.routine_id,
        routine_day_id=session.routine_day_id,
        status=session.status,
        current_pointer=PointerPayload.from_pointer(session.current_pointer),
        override_rest_between_exercises_seconds=session.override_rest_between_exercises_seconds,
        override_rest_after_round_seconds=session.override_rest_after_round_seconds,
        override_rest_after_set_seconds=session.override_rest_after_set_seconds,
        started_at=session.started_at,
        ended_at=session.ended_at,
        workout_groups=groups,
    )
