import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_tracker.db")
os.environ.setdefault("SUMMARY_AUTO_ENABLED", "false")

import pytest
from datetime import date, datetime
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from app import models  # noqa: F401
from app.database import Base, get_db, get_session_factory
from app.main import app
from app.models.fitness import Exercise, Session, SessionExercise
from app.models.user import User


@pytest.fixture(scope="function")
async def db_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(db_session, session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def users(db_session):
    vanessa = User(name="Vanessa", img="/images/avatars/vanessa.png", created_at=datetime(2024, 1, 1, 8, 0))
    santiago = User(name="Santiago", created_at=datetime(2024, 1, 1, 9, 0))
    db_session.add_all([vanessa, santiago])
    await db_session.commit()
    return vanessa, santiago


@pytest.fixture
async def catalog(db_session):
    squat = Exercise(name="Squat", category="Legs")
    bench = Exercise(name="Bench Press", category="Chest")
    deadlift = Exercise(name="Deadlift", category="Back")
    db_session.add_all([squat, bench, deadlift])
    await db_session.commit()
    return {"squat": squat, "bench": bench, "deadlift": deadlift}


@pytest.fixture
def log_session(db_session):
    """Insert a session with ``(exercise, weight_kg)`` pairs straight into the database."""
    async def _log(user: User, day: date, duration_min: int, entries: list[tuple[Exercise, float]]) -> Session:
        session = Session(user_id=user.id, date=day, duration_min=duration_min)
        db_session.add(session)
        await db_session.flush()
        for idx, (exercise, weight_kg) in enumerate(entries):
            db_session.add(
                SessionExercise(
                    session_id=session.id,
                    exercise_id=exercise.id,
                    sets=3,
                    reps=10,
                    weight_kg=weight_kg,
                    order=idx,
                )
            )
        await db_session.commit()
        return session

    return _log
