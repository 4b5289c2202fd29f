"""
Routine storage tables.

Routines are authored and edited elsewhere; the session runtime only reads them
when it freezes a day into a session snapshot.
"""
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base
import uuid


class ExerciseGroupType(str, Enum):
    SINGLE = "SINGLE"
    SUPERSET_2 = "SUPERSET_2"
    SUPERSET_3 = "SUPERSET_3"


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    instructions = Column(Text, nullable=True)
    video_url = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    media_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_media_url(self):
        return self.video_url or self.image_url or self.media_url


class Routine(Base):
    __tablename__ = "routines"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    days = relationship("RoutineDay", back_populates="routine", order_by="RoutineDay.order_index")


class RoutineDay(Base):
    __tablename__ = "routine_days"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    routine_id = Column(String, ForeignKey("routines.id", ondelete="CASCADE"), nullable=False, index=True)
    day_label = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)

    routine = relationship("Routine", back_populates="days")
    groups = relationship("ExerciseGroup", back_populates="day", order_by="ExerciseGroup.order_index")


class ExerciseGroup(Base):
    __tablename__ = "exercise_groups"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    routine_day_id = Column(String, ForeignKey("routine_days.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False, default=ExerciseGroupType.SINGLE.value)
    order_index = Column(Integer, nullable=False, default=0)
    rounds_total = Column(Integer, nullable=False, default=1)
    rest_between_exercises_seconds = Column(Integer, nullable=False, default=0)
    rest_after_round_seconds = Column(Integer, nullable=False, default=0)
    rest_after_set_seconds = Column(Integer, nullable=True)

    day = relationship("RoutineDay", back_populates="groups")
    exercises = relationship("GroupExercise", back_populates="group", order_by="GroupExercise.order_in_group")


class GroupExercise(Base):
    __tablename__ = "group_exercises"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    group_id = Column(String, ForeignKey("exercise_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    exercise_id = Column(String, ForeignKey("exercises.id"), nullable=False)
    order_in_group = Column(String, nullable=False)  # A1, A2, A3
    target_sets_per_round = Column(Integer, nullable=False, default=1)
    rep_range_min = Column(Integer, nullable=False)
    rep_range_max = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    group = relationship("ExerciseGroup", back_populates="exercises")
    exercise = relationship("Exercise")

    @property
    def rep_range(self) -> str:
        if self.rep_range_min == self.rep_range_max:
            return str(self.rep_range_min)
        return f"{self.rep_range_min}-{self.rep_range_max}"


class RoutineAssignment(Base):
    __tablename__ = "routine_assignments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    coach_id = Column(String, ForeignKey("app_user.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True)
    routine_id = Column(String, ForeignKey("routines.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("coach_id", "user_id", "routine_id", name="uq_routine_assignment"),
    )
