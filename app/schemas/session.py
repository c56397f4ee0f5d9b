import datetime
from typing import List
import uuid

from pydantic import BaseModel, Field


class SessionExerciseData(BaseModel):
    exercise_id: uuid.UUID
    sets: int = Field(..., ge=1)
    reps: int = Field(..., ge=1)
    weight_kg: float = Field(0.0, ge=0)


class SessionCreate(BaseModel):
    date: datetime.date
    duration_min: int = Field(..., ge=1)
    notes: str | None = None
    exercises: List[SessionExerciseData] = Field(..., min_length=1)


class SessionUpdate(SessionCreate):
    pass


class ExerciseRef(BaseModel):
    id: uuid.UUID
    name: str
    category: str | None = None

    class Config:
        from_attributes = True


class SessionExerciseResponse(BaseModel):
    id: uuid.UUID
    exercise_id: uuid.UUID
    sets: int
    reps: int
    weight_kg: float
    order: int
    exercise: ExerciseRef | None = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    date: datetime.date
    duration_min: int
    notes: str | None
    created_at: datetime.datetime
    exercises: List[SessionExerciseResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
