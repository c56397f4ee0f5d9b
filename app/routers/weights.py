from typing import Annotated, List
from datetime import date, datetime
import uuid

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.responses import StandardResponse
from app.database import get_db
from app.routers.users import get_user_or_404
from app.services import trend_service
from app.services.calendar_service import today_local, week_start_for

router = APIRouter()


class WeightEntryCreate(BaseModel):
    weight_kg: float = Field(..., gt=0)
    week_start: date | None = None


class WeightEntryResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    week_start: date
    weight_kg: float
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/users/{user_id}/weights", response_model=StandardResponse[List[WeightEntryResponse]])
async def list_weight_entries(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(10, ge=1, le=520),
):
    """Weigh-ins, most recent week first."""
    await get_user_or_404(db, user_id)
    entries = await trend_service.list_weight_entries(user_id, db, limit=limit)
    return StandardResponse(data=[WeightEntryResponse.model_validate(e) for e in entries])


@router.post(
    "/users/{user_id}/weights",
    response_model=StandardResponse[WeightEntryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_weight_entry(
    user_id: uuid.UUID,
    data: WeightEntryCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Record the weekly weigh-in. A second weigh-in in the same week replaces the first."""
    await get_user_or_404(db, user_id)
    entry = await trend_service.register_weight_entry(user_id, data.weight_kg, db, week_start=data.week_start)
    return StandardResponse(message="Weight registered", data=WeightEntryResponse.model_validate(entry))


@router.get("/users/{user_id}/weights/projection", response_model=StandardResponse)
async def get_weight_projection(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    week_start: date | None = Query(None),
):
    """Projected weight for the given week from the preceding weigh-ins (null when unavailable)."""
    await get_user_or_404(db, user_id)
    as_of = week_start_for(week_start or today_local())
    projection = await trend_service.project_next_weight_kg(user_id, as_of, db)
    return StandardResponse(data={"week_start": as_of, "projected_weight_kg": projection})
