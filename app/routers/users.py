from typing import Annotated, List
from datetime import datetime
import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User

router = APIRouter()


class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    img: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


async def get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=StandardResponse[List[UserResponse]])
async def list_users(db: Annotated[AsyncSession, Depends(get_db)]):
    """List the users of the tracker."""
    result = await db.execute(select(User).order_by(User.created_at, User.name))
    users = result.scalars().all()
    return StandardResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get("/{user_id}", response_model=StandardResponse[UserResponse])
async def get_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await get_user_or_404(db, user_id)
    return StandardResponse(data=UserResponse.model_validate(user))
