"""
Per-session workout snapshot.

A session owns a frozen copy of one routine day (groups -> items -> sets) plus
the mutable progress recorded against it. Later edits to the routine never
touch these rows.
"""
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Boolean, Float, UniqueConstraint, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.models.routine import ExerciseGroupType
from app.services.workout.pointer import Pointer
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkoutSessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


class WorkoutSession(Base):
    __tablename__ = "workout_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    routine_id = Column(String, ForeignKey("routines.id", ondelete="SET NULL"), nullable=True)
    routine_day_id = Column(String, ForeignKey("routine_days.id", ondelete="SET NULL"), nullable=True)
    status = Column(String, nullable=False, default=WorkoutSessionStatus.ACTIVE.value)
    pointer_group_index = Column(Integer, nullable=False, default=0)
    pointer_exercise_index = Column(Integer, nullable=False, default=0)
    pointer_set_index = Column(Integer, nullable=False, default=0)
    pointer_round_index = Column(Integer, nullable=False, default=0)
    override_rest_between_exercises_seconds = Column(Integer, nullable=True)
    override_rest_after_round_seconds = Column(Integer, nullable=True)
    override_rest_after_set_seconds = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    workout_groups = relationship(
        "WorkoutGroup",
        back_populates="session",
        order_by="WorkoutGroup.order_index",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # At most one ACTIVE session per user
        Index(
            "uq_workout_sessions_user_active",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_workout_sessions_user_status", "user_id", "status"),
    )

    @property
    def current_pointer(self) -> Pointer:
        return Pointer(
            group_index=self.pointer_group_index or 0,
            exercise_index=self.pointer_exercise_index or 0,
            set_index=self.pointer_set_index or 0,
            round_index=self.pointer_round_index or 0,
        )

    @current_pointer.setter
    def current_pointer(self, pointer: Pointer) -> None:
        self.pointer_group_index = pointer.group_index
        self.pointer_exercise_index = pointer.exercise_index
        self.pointer_set_index = pointer.set_index
        self.pointer_round_index = pointer.round_index

    def __repr__(self):
        return f"<WorkoutSession(id='{self.id}', status='{self.status}')>"


class WorkoutGroup(Base):
    __tablename__ = "workout_groups"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workout_session_id = Column(String, ForeignKey("workout_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    source_group_id = Column(String, nullable=True)
    type = Column(String, nullable=False, default=ExerciseGroupType.SINGLE.value)
    order_index = Column(Integer, nullable=False)
    rounds_total = Column(Integer, nullable=False)
    round_current = Column(Integer, nullable=False, default=1)
    rest_between_exercises_seconds = Column(Integer, nullable=False, default=0)
    rest_after_round_seconds = Column(Integer, nullable=False, default=0)
    rest_after_set_seconds = Column(Integer, nullable=True)

    session = relationship("WorkoutSession", back_populates="workout_groups")
    workout_items = relationship(
        "WorkoutExerciseItem",
        back_populates="workout_group",
        order_by="WorkoutExerciseItem.order_in_group",
        cascade="all, delete-orphan",
    )


class WorkoutExerciseItem(Base):
    __tablename__ = "workout_exercise_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workout_group_id = Column(String, ForeignKey("workout_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    source_group_exercise_id = Column(String, nullable=True)
    order_in_group = Column(String, nullable=False)
    target_sets_total = Column(Integer, nullable=False)
    rep_range = Column(String, nullable=False)
    notes = Column(Text, nullable=True)

    workout_group = relationship("WorkoutGroup", back_populates="workout_items")
    sets = relationship(
        "WorkoutSet",
        back_populates="workout_exercise_item",
        order_by="WorkoutSet.set_number",
        cascade="all, delete-orphan",
    )


class WorkoutSet(Base):
    __tablename__ = "workout_sets"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workout_exercise_item_id = Column(String, ForeignKey("workout_exercise_items.id", ondelete="CASCADE"), nullable=False)
    set_number = Column(Integer, nullable=False)
    weight = Column(Float, nullable=True)
    reps = Column(Integer, nullable=True)
    rpe = Column(Float, nullable=True)
    is_done = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    workout_exercise_item = relationship("WorkoutExerciseItem", back_populates="sets")

    __table_args__ = (
        UniqueConstraint("workout_exercise_item_id", "set_number", name="uq_workout_set_number"),
    )


class WorkoutSessionEvent(Base):
    """Client event ids already applied to a session (idempotency ledger)."""

    __tablename__ = "workout_session_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    workout_session_id = Column(String, ForeignKey("workout_sessions.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(String, nullable=False)
    applied_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("workout_session_id", "event_id", name="uq_workout_session_event"),
    )
