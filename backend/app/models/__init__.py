from .user import User
from .routine import Exercise, ExerciseGroup, ExerciseGroupType, GroupExercise, Routine, RoutineAssignment, RoutineDay
from .workout_session import (
    WorkoutExerciseItem,
    WorkoutGroup,
    WorkoutSession,
    WorkoutSessionEvent,
    WorkoutSessionStatus,
    WorkoutSet,
)
