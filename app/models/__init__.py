from app.models.user import User
from app.models.fitness import Exercise, Session, SessionExercise
from app.models.progress import Goal, WeeklySummary, WeightEntry
from app.models.enums import GoalType


__all__ = [
    "User",
    "Exercise",
    "Session",
    "SessionExercise",
    "WeeklySummary",
    "WeightEntry",
    "Goal",
    "GoalType",
]
