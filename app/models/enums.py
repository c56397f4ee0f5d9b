from enum import Enum

class GoalType(str, Enum):
    WEIGHT = "weight"
    FREQUENCY = "frequency"
    EXERCISE = "exercise"
