from typing import Annotated, List
from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.filters import SessionFilter
from app.core.responses import StandardResponse
from app.database import get_db
from app.routers.users import get_user_or_404
from app.schemas.session import SessionCreate, SessionResponse, SessionUpdate
from app.services.session_service import SessionService

router = APIRouter()


@router.get("/users/{user_id}/sessions", response_model=StandardResponse[List[SessionResponse]])
async def list_sessions(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
):
    """A user's sessions, most recent first, optionally limited to a date range."""
    await get_user_or_404(db, user_id)
    sessions = await SessionService.list_sessions(
        db, SessionFilter(user_id=user_id, start_date=start_date, end_date=end_date)
    )
    return StandardResponse(data=[SessionResponse.model_validate(s) for s in sessions])


@router.post(
    "/users/{user_id}/sessions",
    response_model=StandardResponse[SessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    user_id: uuid.UUID,
    data: SessionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    session = await SessionService.create_session(db, user_id, data)
    return StandardResponse(message="Session logged", data=SessionResponse.model_validate(session))


@router.get("/sessions/{session_id}", response_model=StandardResponse[SessionResponse])
async def get_session(
    session_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    session = await SessionService.get_session(db, session_id)
    return StandardResponse(data=SessionResponse.model_validate(session))


@router.put("/sessions/{session_id}", response_model=StandardResponse[SessionResponse])
async def update_session(
    session_id: uuid.UUID,
    data: SessionUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update a session (exercise list is replaced, not merged)."""
    session = await SessionService.update_session(db, session_id, data)
    return StandardResponse(message="Session updated", data=SessionResponse.model_validate(session))


@router.delete("/sessions/{session_id}", response_model=StandardResponse)
async def delete_session(
    session_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await SessionService.delete_session(db, session_id)
    return StandardResponse(message="Session deleted")
