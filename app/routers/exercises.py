from typing import Annotated, List
import uuid

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.filters import ExerciseFilter
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.fitness import Exercise
from app.routers.users import get_user_or_404

router = APIRouter()


class ExerciseCreate(BaseModel):
    name: str
    category: str | None = None
    creator_id: uuid.UUID | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name must not be empty")
        return normalized

    @field_validator("category")
    @classmethod
    def normalize_category(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class ExerciseResponse(ExerciseCreate):
    id: uuid.UUID

    class Config:
        from_attributes = True


@router.get("", response_model=StandardResponse[List[ExerciseResponse]])
async def list_exercises(
    db: Annotated[AsyncSession, Depends(get_db)],
    category: str | None = Query(None),
    creator_id: uuid.UUID | None = Query(None),
    search: str | None = Query(None),
):
    """List catalog exercises alphabetically."""
    filters = ExerciseFilter(category=category, creator_id=creator_id, search=search)
    stmt = filters.apply(select(Exercise)).order_by(Exercise.name)
    result = await db.execute(stmt)
    exercises = result.scalars().all()
    return StandardResponse(data=[ExerciseResponse.model_validate(e) for e in exercises])


@router.post("", response_model=StandardResponse[ExerciseResponse], status_code=status.HTTP_201_CREATED)
async def create_exercise(
    data: ExerciseCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Add an exercise to the catalog. Names are unique regardless of case."""
    duplicate_stmt = select(Exercise.id).where(func.lower(Exercise.name) == data.name.lower())
    if (await db.execute(duplicate_stmt)).scalar_one_or_none():
        raise ConflictError("An exercise with this name already exists")
    if data.creator_id:
        await get_user_or_404(db, data.creator_id)

    exercise = Exercise(name=data.name, category=data.category, creator_id=data.creator_id)
    db.add(exercise)
    await db.commit()
    return StandardResponse(message="Exercise created", data=ExerciseResponse.model_validate(exercise))
