from typing import Annotated, List
from dataclasses import asdict
from datetime import datetime
import uuid

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.enums import GoalType
from app.models.progress import Goal
from app.routers.users import get_user_or_404
from app.services import trend_service

router = APIRouter()


class GoalCreate(BaseModel):
    type: GoalType
    target_value: float = Field(..., gt=0)


class GoalUpdate(BaseModel):
    type: GoalType | None = None
    target_value: float = Field(..., gt=0)


class GoalResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: GoalType
    target_value: float
    created_at: datetime

    class Config:
        from_attributes = True


async def _get_goal_or_404(db: AsyncSession, goal_id: uuid.UUID) -> Goal:
    result = await db.execute(select(Goal).where(Goal.id == goal_id))
    goal = result.scalar_one_or_none()
    if not goal:
        raise NotFoundError("Goal not found")
    return goal


async def _ensure_type_available(db: AsyncSession, user_id: uuid.UUID, goal_type: GoalType) -> None:
    stmt = select(Goal.id).where(Goal.user_id == user_id, Goal.type == goal_type)
    if (await db.execute(stmt)).scalar_one_or_none():
        raise ConflictError(f"A '{goal_type.value}' goal already exists for this user")


@router.get("/users/{user_id}/goals", response_model=StandardResponse[List[GoalResponse]])
async def list_goals(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    type: GoalType | None = Query(None),
):
    await get_user_or_404(db, user_id)
    stmt = select(Goal).where(Goal.user_id == user_id)
    if type:
        stmt = stmt.where(Goal.type == type)
    result = await db.execute(stmt.order_by(Goal.created_at.desc()))
    return StandardResponse(data=[GoalResponse.model_validate(g) for g in result.scalars().all()])


@router.post(
    "/users/{user_id}/goals",
    response_model=StandardResponse[GoalResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_goal(
    user_id: uuid.UUID,
    data: GoalCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a goal. Only one goal per type is allowed for each user."""
    await get_user_or_404(db, user_id)
    await _ensure_type_available(db, user_id, data.type)

    goal = Goal(user_id=user_id, type=data.type, target_value=data.target_value)
    db.add(goal)
    await db.commit()
    return StandardResponse(message="Goal created", data=GoalResponse.model_validate(goal))


@router.get("/goals/{goal_id}", response_model=StandardResponse[GoalResponse])
async def get_goal(
    goal_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    goal = await _get_goal_or_404(db, goal_id)
    return StandardResponse(data=GoalResponse.model_validate(goal))


@router.put("/goals/{goal_id}", response_model=StandardResponse[GoalResponse])
async def update_goal(
    goal_id: uuid.UUID,
    data: GoalUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    goal = await _get_goal_or_404(db, goal_id)
    if data.type and data.type != goal.type:
        await _ensure_type_available(db, goal.user_id, data.type)
        goal.type = data.type
    goal.target_value = data.target_value
    await db.commit()
    return StandardResponse(message="Goal updated", data=GoalResponse.model_validate(goal))


@router.delete("/goals/{goal_id}", response_model=StandardResponse)
async def delete_goal(
    goal_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    goal = await _get_goal_or_404(db, goal_id)
    await db.delete(goal)
    await db.commit()
    return StandardResponse(message="Goal deleted")


@router.get("/goals/{goal_id}/progress", response_model=StandardResponse)
async def get_goal_progress(
    goal_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    goal = await _get_goal_or_404(db, goal_id)
    progress = await trend_service.get_goal_progress(goal, db)
    return StandardResponse(data=asdict(progress))
