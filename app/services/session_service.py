"""Workout session persistence.

A session and its exercise list are written together: create, update and
delete either fully commit or roll back. On update the exercise rows are
deleted in bulk and recreated from the submitted list.
"""
from collections.abc import Sequence
import logging
import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFoundError
from app.core.filters import SessionFilter
from app.models.fitness import Exercise, Session, SessionExercise
from app.models.user import User
from app.schemas.session import SessionCreate, SessionExerciseData, SessionUpdate

logger = logging.getLogger(__name__)


def _with_exercises(stmt):
    return stmt.options(selectinload(Session.exercises).selectinload(SessionExercise.exercise))


class SessionService:
    @staticmethod
    async def _ensure_user(db: AsyncSession, user_id: uuid.UUID) -> None:
        result = await db.execute(select(User.id).where(User.id == user_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"User {user_id} does not exist")

    @staticmethod
    async def _ensure_exercises(db: AsyncSession, exercises: Sequence[SessionExerciseData]) -> None:
        requested = {entry.exercise_id for entry in exercises}
        result = await db.execute(select(Exercise.id).where(Exercise.id.in_(requested)))
        missing = requested - set(result.scalars().all())
        if missing:
            raise NotFoundError(
                "The following exercises do not exist: " + ", ".join(sorted(str(m) for m in missing))
            )

    @staticmethod
    def _add_session_exercises(db: AsyncSession, session_id: uuid.UUID, exercises: Sequence[SessionExerciseData]) -> None:
        for idx, entry in enumerate(exercises):
            db.add(
                SessionExercise(
                    session_id=session_id,
                    exercise_id=entry.exercise_id,
                    sets=entry.sets,
                    reps=entry.reps,
                    weight_kg=entry.weight_kg,
                    order=idx,
                )
            )

    @staticmethod
    async def replace_session_exercises(
        db: AsyncSession,
        session_id: uuid.UUID,
        exercises: Sequence[SessionExerciseData],
    ) -> None:
        """Bulk-delete the session's exercise rows and recreate them. Caller commits."""
        await db.execute(delete(SessionExercise).where(SessionExercise.session_id == session_id))
        SessionService._add_session_exercises(db, session_id, exercises)

    @staticmethod
    async def get_session(db: AsyncSession, session_id: uuid.UUID) -> Session:
        stmt = _with_exercises(select(Session).where(Session.id == session_id))
        result = await db.execute(stmt.execution_options(populate_existing=True))
        session = result.scalar_one_or_none()
        if not session:
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    async def list_sessions(db: AsyncSession, filters: SessionFilter) -> list[Session]:
        stmt = _with_exercises(filters.apply(select(Session))).order_by(Session.date.desc(), Session.created_at.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create_session(db: AsyncSession, user_id: uuid.UUID, data: SessionCreate) -> Session:
        await SessionService._ensure_user(db, user_id)
        await SessionService._ensure_exercises(db, data.exercises)

        try:
            session = Session(
                user_id=user_id,
                date=data.date,
                duration_min=data.duration_min,
                notes=data.notes,
            )
            db.add(session)
            await db.flush()
            SessionService._add_session_exercises(db, session.id, data.exercises)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Created session %s for user %s on %s", session.id, user_id, data.date)
        return await SessionService.get_session(db, session.id)

    @staticmethod
    async def update_session(db: AsyncSession, session_id: uuid.UUID, data: SessionUpdate) -> Session:
        session = await SessionService.get_session(db, session_id)
        await SessionService._ensure_exercises(db, data.exercises)

        try:
            session.date = data.date
            session.duration_min = data.duration_min
            session.notes = data.notes
            await SessionService.replace_session_exercises(db, session.id, data.exercises)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return await SessionService.get_session(db, session_id)

    @staticmethod
    async def delete_session(db: AsyncSession, session_id: uuid.UUID) -> None:
        await SessionService.get_session(db, session_id)

        try:
            await db.execute(delete(SessionExercise).where(SessionExercise.session_id == session_id))
            await db.execute(delete(Session).where(Session.id == session_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Deleted session %s", session_id)
