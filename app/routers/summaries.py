from typing import Annotated
from dataclasses import asdict
from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.responses import StandardResponse
from app.database import get_db, get_session_factory
from app.models.progress import Goal
from app.routers.users import get_user_or_404
from app.services import trend_service
from app.services.calendar_service import month_bounds, today_local, week_end_for, week_start_for
from app.services.summary_automation_service import SummaryAutomationService
from app.services.summary_service import SummaryService, serialize_weekly_summary

router = APIRouter()

RECENT_WEIGHT_ENTRIES = 5


@router.get("/users/{user_id}/summaries/weekly", response_model=StandardResponse)
async def get_weekly_summary(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    week_start: date | None = Query(None),
):
    """Weekly report: memoized summary (null when the week has no sessions), weights, top exercises, goals."""
    await get_user_or_404(db, user_id)
    start = week_start_for(week_start or today_local())
    end = week_end_for(start)

    summary = await SummaryService.get_or_create_weekly_summary(db, user_id, start)
    weight_entries = await trend_service.list_weight_entries(user_id, db, until=start, limit=RECENT_WEIGHT_ENTRIES)
    top_exercises = await SummaryService.get_top_exercises(db, user_id, start, end)
    projection = await trend_service.project_next_weight_kg(user_id, start, db)
    goals = (await db.execute(select(Goal).where(Goal.user_id == user_id).order_by(Goal.created_at))).scalars().all()

    return StandardResponse(data={
        "summary": serialize_weekly_summary(summary) if summary else None,
        "week_range": {"start": start, "end": end},
        "weight_entries": [
            {"id": e.id, "week_start": e.week_start, "weight_kg": e.weight_kg} for e in weight_entries
        ],
        "weight_projection": projection,
        "top_exercises": top_exercises,
        "goals": [
            {"id": g.id, "type": g.type.value, "target_value": g.target_value} for g in goals
        ],
    })


@router.get("/users/{user_id}/summaries/monthly", response_model=StandardResponse)
async def get_monthly_summary(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    year: int | None = Query(None, ge=1970, le=9999),
    month: int | None = Query(None, ge=1, le=12),
):
    await get_user_or_404(db, user_id)
    today = today_local()
    month_start, month_end = month_bounds(year or today.year, month or today.month)
    data = await SummaryService.get_monthly_summary(db, user_id, month_start, month_end)
    return StandardResponse(data=asdict(data))


@router.get("/users/{user_id}/summaries/annual", response_model=StandardResponse)
async def get_annual_summary(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    year: int | None = Query(None, ge=1970, le=9999),
):
    await get_user_or_404(db, user_id)
    data = await SummaryService.get_annual_summary(db, user_id, year or today_local().year)
    return StandardResponse(data=asdict(data))


@router.get("/summaries/shared/weekly", response_model=StandardResponse)
async def get_shared_weekly_summary(
    db: Annotated[AsyncSession, Depends(get_db)],
    week_start: date | None = Query(None),
):
    """Side-by-side week for both users, including days they trained on the same date."""
    data = await SummaryService.get_shared_weekly_summary(db, week_start or today_local())
    return StandardResponse(data=asdict(data))


@router.post("/summaries/regenerate", response_model=StandardResponse)
async def regenerate_weekly_summaries(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    week_start: date | None = Query(None),
):
    """Recompute and overwrite every user's summary for the previous week (or the given week)."""
    summary = await SummaryAutomationService.run(session_factory, week_start=week_start, reason="manual_api")
    return StandardResponse(message="Weekly summaries regenerated", data=summary)


@router.get("/summaries/regenerate/status", response_model=StandardResponse)
async def get_regeneration_status():
    return StandardResponse(data=SummaryAutomationService.status())
