"""Request and response models for the workout session API."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.services.workout.pointer import Pointer


class PointerPayload(BaseModel):
    group_index: int = Field(0, ge=0)
    exercise_index: int = Field(0, ge=0)
    set_index: int = Field(0, ge=0)
    round_index: int = Field(0, ge=0)

    def to_pointer(self) -> Pointer:
        return Pointer(**self.model_dump())

    @classmethod
    def from_pointer(cls, pointer: Pointer) -> "PointerPayload":
        return cls(**pointer.to_dict())


class RestOverrides(BaseModel):
    rest_between_exercises_seconds: Optional[int] = Field(None, ge=0)
    rest_after_round_seconds: Optional[int] = Field(None, ge=0)
    rest_after_set_seconds: Optional[int] = Field(None, ge=0)


class StartSessionRequest(BaseModel):
    routine_id: UUID
    day_id: UUID
    overrides: Optional[RestOverrides] = None


class SetUpdate(BaseModel):
    workout_exercise_item_id: UUID
    set_number: int = Field(..., gt=0)
    weight: Optional[float] = Field(None, ge=0)
    reps: Optional[int] = Field(None, gt=0)
    rpe: Optional[float] = Field(None, ge=1, le=10)
    is_done: bool = False


class ProgressUpdateRequest(BaseModel):
    event_id: Optional[str] = Field(None, min_length=1, max_length=128)
    current_pointer: Optional[PointerPayload] = None
    set_update: Optional[SetUpdate] = None


class FinishSessionRequest(BaseModel):
    session_id: UUID


class WorkoutSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    set_number: int
    weight: Optional[float] = None
    reps: Optional[int] = None
    rpe: Optional[float] = None
    is_done: bool = False
    completed_at: Optional[datetime] = None


class WorkoutExerciseItemResponse(BaseModel):
    id: str
    source_group_exercise_id: Optional[str] = None
    order_in_group: str
    target_sets_total: int
    rep_range: str
    notes: Optional[str] = None
    exercise_name: Optional[str] = None
    exercise_description: Optional[str] = None
    exercise_media_url: Optional[str] = None
    sets: List[WorkoutSetResponse] = []


class WorkoutGroupResponse(BaseModel):
    id: str
    source_group_id: Optional[str] = None
    type: str
    order_index: int
    rounds_total: int
    round_current: int
    rest_between_exercises_seconds: int
    rest_after_round_seconds: int
    rest_after_set_seconds: Optional[int] = None
    workout_items: List[WorkoutExerciseItemResponse] = []


class WorkoutSessionResponse(BaseModel):
    id: str
    user_id: str
    routine_id: Optional[str] = None
    routine_day_id: Optional[str] = None
    status: str
    current_pointer: PointerPayload
    override_rest_between_exercises_seconds: Optional[int] = None
    override_rest_after_round_seconds: Optional[int] = None
    override_rest_after_set_seconds: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    workout_groups: List[WorkoutGroupResponse] = []
